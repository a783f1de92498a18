"""vaultcore: pooled yield vault with weighted strategy allocation."""

__all__ = ["EventBus", "Vault", "VaultSettings", "__version__"]
__version__ = "0.1.0"


def __getattr__(name: str):
    if name == "EventBus":
        from .core.bus import EventBus

        return EventBus
    if name == "Vault":
        from .vault import Vault

        return Vault
    if name == "VaultSettings":
        from .config import VaultSettings

        return VaultSettings
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
