"""Configuration management using Pydantic v2."""

import os

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


def _find_env_file() -> str:
    """Find .env file: check project root first, then CWD."""
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    env_path = os.path.join(project_root, ".env")
    if os.path.exists(env_path):
        return env_path
    return ".env"


class VaultSettings(BaseSettings):
    """Main configuration for the vault core."""

    model_config = SettingsConfigDict(
        env_file=_find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Observability: logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="text",
        description=(
            "Log output format: 'json' for structured JSON (log aggregators) "
            "or 'text' for human-readable console output (local development)."
        ),
    )

    # Base asset
    asset_decimals: int = Field(
        default=6,
        ge=0,
        le=36,
        description="Decimal places of the base asset (reference deployment: 6, like USDC)",
    )

    # Vault deployment parameters
    vault_name: str = Field(default="USDC Yield Vault", min_length=1, description="Vault share name")
    vault_symbol: str = Field(default="yUSDC", min_length=1, description="Vault share symbol")
    min_liquidity: int = Field(
        default=1_000_000,
        ge=0,
        description="Assets always kept in the vault buffer before anything is deployed (1 unit at 6 decimals)",
    )
    auto_rebalance_on_deposit: bool = Field(
        default=True,
        description="Run the rebalancer after every deposit/mint",
    )
    default_allocation_bps: int = Field(
        default=5000,
        ge=0,
        le=10_000,
        description="Target weight used when a strategy is registered without an explicit weight",
    )

    # Audit trail
    audit_log_dir: str | None = Field(
        default=None,
        description="Directory for the JSON-lines audit log (None keeps the log in memory only)",
    )
    audit_log_max_in_memory: int = Field(
        default=10_000,
        gt=0,
        description="Maximum audit entries retained in memory",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {v}, must be one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is 'text' or 'json'."""
        fmt = v.lower()
        if fmt not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {v}, must be 'text' or 'json'")
        return fmt

    @model_validator(mode="after")
    def validate_symbols_differ(self) -> "VaultSettings":
        """Validate the share symbol is not reused as the share name."""
        if self.vault_name == self.vault_symbol:
            raise ValueError("vault_name and vault_symbol must differ")
        return self


settings = VaultSettings()
