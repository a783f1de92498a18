"""Event types and DTOs for the vault core."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_BPS = 10_000
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class EventType(str, Enum):
    """Event type enumeration."""

    # Share ledger events
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    APPROVAL = "approval"

    # Registry events
    STRATEGY_ADDED = "strategy_added"
    STRATEGY_REMOVED = "strategy_removed"
    STRATEGY_ALLOCATION_UPDATED = "strategy_allocation_updated"

    # Capital movement events
    FUNDS_DEPLOYED = "funds_deployed"
    FUNDS_WITHDRAWN = "funds_withdrawn"
    REBALANCED = "rebalanced"
    STRATEGY_CALL_FAILED = "strategy_call_failed"

    # Strategy lifecycle events
    HARVEST = "harvest"
    EMERGENCY_EVACUATED = "emergency_evacuated"
    YIELD_DRIPPED = "yield_dripped"
    SKIMMED = "skimmed"

    # Administrative events
    PAUSE_UPDATED = "pause_updated"
    MIN_LIQUIDITY_UPDATED = "min_liquidity_updated"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"


@dataclass
class Event:
    """Base event class."""

    event_type: EventType
    source: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = field(default_factory=dict)


class StrategyInfo(BaseModel):
    """Vault-side bookkeeping for one registered strategy."""

    model_config = ConfigDict(validate_assignment=True)

    target_allocation_bps: int = Field(ge=0, le=MAX_BPS)
    total_deposited: int = Field(default=0, ge=0)
    is_active: bool = True


class RebalanceAction(BaseModel):
    """Outcome of one per-strategy rebalance step."""

    strategy_id: str
    target: int
    current: int
    action: str  # "deposit", "withdraw", "hold" or "skipped"
    amount: int = 0
    error: str | None = None

    @field_validator("action")
    @classmethod
    def validate_action(cls, v: str) -> str:
        """Validate action is a known step outcome."""
        if v not in ("deposit", "withdraw", "hold", "skipped"):
            raise ValueError(f"Invalid action: {v}")
        return v


class RebalanceReport(BaseModel):
    """Summary of one rebalance pass."""

    total_assets: int
    deployable: int
    deployed: int = 0
    withdrawn: int = 0
    actions: list[RebalanceAction] = Field(default_factory=list)

    @property
    def skipped(self) -> list[str]:
        """Strategies whose step failed and was rolled back."""
        return [a.strategy_id for a in self.actions if a.action == "skipped"]


class HarvestResult(BaseModel):
    """Outcome of harvesting one strategy."""

    strategy_id: str
    pnl: int = 0
    recognized: int = 0  # change in the vault's recorded deposits
    total_deposited: int = 0
    error: str | None = None


class HarvestReport(BaseModel):
    """Summary of a harvest across all active strategies."""

    total_pnl: int = 0
    results: list[HarvestResult] = Field(default_factory=list)

    @property
    def failed(self) -> list[str]:
        return [r.strategy_id for r in self.results if r.error is not None]
