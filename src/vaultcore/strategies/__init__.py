"""Strategy accounting units."""

from vaultcore.strategies.base import BaseStrategy, Strategy
from vaultcore.strategies.idle import IdleStrategy

__all__ = [
    "BaseStrategy",
    "IdleStrategy",
    "Strategy",
]
