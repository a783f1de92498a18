"""Portfolio management -- strategy registry, rebalancing, and withdrawal routing."""

from .rebalancer import AllocationRebalancer
from .registry import StrategyRegistry
from .router import WithdrawalRouter

__all__ = [
    "AllocationRebalancer",
    "StrategyRegistry",
    "WithdrawalRouter",
]
