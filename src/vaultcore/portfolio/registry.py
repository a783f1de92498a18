"""Strategy registry: target weights and recorded deposits per strategy."""

from collections.abc import Iterator

from vaultcore.core.errors import (
    AllocationExceeded,
    InvalidAmount,
    StrategyAlreadyActive,
    StrategyMismatch,
    StrategyNotRegistered,
)
from vaultcore.core.journal import Journal, Stateful
from vaultcore.core.math import checked_add
from vaultcore.core.token import AssetToken
from vaultcore.core.types import MAX_BPS, StrategyInfo
from vaultcore.logging import get_logger
from vaultcore.strategies.base import Strategy

logger = get_logger(__name__)


class StrategyRegistry(Stateful):
    """Identity-keyed strategy bookkeeping with a deterministic iteration order.

    Active strategies are iterated in ``_order``; removal swaps the last
    entry into the freed slot. Records of removed strategies are kept,
    inactive, so a strategy can be registered again later.
    """

    _state_fields = ("_infos", "_order", "_total_allocation_bps")
    _ref_fields = ("_strategies",)

    def __init__(self, asset: AssetToken, vault: str, journal: Journal) -> None:
        """Initialize an empty registry for ``vault``."""
        self._asset = asset
        self._vault = vault
        self._strategies: dict[str, Strategy] = {}
        self._infos: dict[str, StrategyInfo] = {}
        self._order: list[str] = []
        self._total_allocation_bps = 0
        journal.register(self)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def total_allocation_bps(self) -> int:
        return self._total_allocation_bps

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, strategy_id: str) -> bool:
        return self.is_strategy(strategy_id)

    def __iter__(self) -> Iterator[tuple[str, Strategy, StrategyInfo]]:
        """Yield ``(id, strategy, info)`` for active strategies in registry order."""
        for strategy_id in list(self._order):
            yield strategy_id, self._strategies[strategy_id], self._infos[strategy_id]

    def strategies(self) -> list[str]:
        """Active strategy ids in registry order."""
        return list(self._order)

    def is_strategy(self, strategy_id: str) -> bool:
        info = self._infos.get(strategy_id)
        return info is not None and info.is_active

    def get(self, strategy_id: str) -> Strategy:
        self._require_active(strategy_id)
        return self._strategies[strategy_id]

    def info(self, strategy_id: str) -> StrategyInfo:
        """Copy of the record for a known (active or removed) strategy."""
        if strategy_id not in self._infos:
            raise StrategyNotRegistered(strategy_id)
        return self._infos[strategy_id].model_copy()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, strategy: Strategy, weight_bps: int) -> StrategyInfo:
        """Register ``strategy`` with a target weight."""
        strategy_id = strategy.address
        if self.is_strategy(strategy_id):
            raise StrategyAlreadyActive(strategy_id)
        self._validate_weight(weight_bps)
        if weight_bps > MAX_BPS:
            raise AllocationExceeded(weight_bps, MAX_BPS)
        new_total = self._total_allocation_bps + weight_bps
        if new_total > MAX_BPS:
            raise AllocationExceeded(new_total, MAX_BPS)
        if strategy.asset is not self._asset:
            raise StrategyMismatch(f"strategy {strategy_id} holds {strategy.asset.symbol}, not {self._asset.symbol}")
        if strategy.vault != self._vault:
            raise StrategyMismatch(f"strategy {strategy_id} is bound to vault {strategy.vault}")

        self._strategies[strategy_id] = strategy
        self._infos[strategy_id] = StrategyInfo(target_allocation_bps=weight_bps)
        self._order.append(strategy_id)
        self._total_allocation_bps = new_total
        logger.info(f"Registered strategy {strategy_id} at {weight_bps} bps (total {new_total})")
        return self._infos[strategy_id].model_copy()

    def update_allocation(self, strategy_id: str, weight_bps: int) -> int:
        """Replace a strategy's weight; returns the previous weight."""
        self._require_active(strategy_id)
        self._validate_weight(weight_bps)
        info = self._infos[strategy_id]
        new_total = self._total_allocation_bps - info.target_allocation_bps + weight_bps
        if new_total > MAX_BPS:
            raise AllocationExceeded(new_total, MAX_BPS)
        previous = info.target_allocation_bps
        info.target_allocation_bps = weight_bps
        self._total_allocation_bps = new_total
        return previous

    def remove(self, strategy_id: str) -> StrategyInfo:
        """Deactivate a strategy and return its weight to the budget."""
        self._require_active(strategy_id)
        info = self._infos[strategy_id]
        removed = info.model_copy()

        index = self._order.index(strategy_id)
        last = self._order.pop()
        if last != strategy_id:
            self._order[index] = last

        self._total_allocation_bps -= info.target_allocation_bps
        info.target_allocation_bps = 0
        info.total_deposited = 0
        info.is_active = False
        del self._strategies[strategy_id]
        return removed

    # ------------------------------------------------------------------
    # Deposit bookkeeping
    # ------------------------------------------------------------------

    def record_deposit(self, strategy_id: str, amount: int) -> int:
        info = self._active_info(strategy_id)
        info.total_deposited = checked_add(info.total_deposited, amount)
        return info.total_deposited

    def record_withdrawal(self, strategy_id: str, amount: int) -> int:
        """Decrease recorded deposits, clamped at zero."""
        info = self._active_info(strategy_id)
        info.total_deposited = max(0, info.total_deposited - amount)
        return info.total_deposited

    def set_recorded(self, strategy_id: str, amount: int) -> int:
        info = self._active_info(strategy_id)
        info.total_deposited = amount
        return amount

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_active(self, strategy_id: str) -> None:
        if not self.is_strategy(strategy_id):
            raise StrategyNotRegistered(strategy_id)

    def _active_info(self, strategy_id: str) -> StrategyInfo:
        self._require_active(strategy_id)
        return self._infos[strategy_id]

    @staticmethod
    def _validate_weight(weight_bps: int) -> None:
        if not isinstance(weight_bps, int) or isinstance(weight_bps, bool) or weight_bps < 0:
            raise InvalidAmount(f"weight must be a non-negative integer of bps, got {weight_bps!r}")
