"""Vault ledger: pooled deposits routed across weighted strategies.

The vault is a share ledger whose assets live partly in its own buffer and
partly in registered strategies. Deposits trigger an implicit rebalance
pass; withdrawals source missing liquidity from strategies before shares
are burned. Every public operation runs in one journal transaction.
"""

import logging

from vaultcore.config import settings
from vaultcore.core.errors import VaultError
from vaultcore.core.math import UINT256_MAX, checked_add, require_amount
from vaultcore.core.token import AssetToken
from vaultcore.core.types import (
    EventType,
    HarvestReport,
    HarvestResult,
    RebalanceReport,
    StrategyInfo,
)
from vaultcore.ledger.shares import ShareLedger
from vaultcore.logging import get_logger, log_exception
from vaultcore.portfolio.rebalancer import AllocationRebalancer
from vaultcore.portfolio.registry import StrategyRegistry
from vaultcore.portfolio.router import WithdrawalRouter
from vaultcore.strategies.base import Strategy

logger = get_logger(__name__)


class Vault(ShareLedger):
    """Pooled yield vault over a single base asset."""

    _state_fields = ShareLedger._state_fields + ("_min_liquidity",)

    def __init__(
        self,
        asset: AssetToken,
        name: str,
        symbol: str,
        owner: str,
        min_liquidity: int | None = None,
        auto_rebalance: bool | None = None,
        address: str | None = None,
    ) -> None:
        """Initialize an empty vault.

        Args:
            asset: Base asset token; its journal becomes the vault's journal
            name: Share name
            symbol: Share symbol
            owner: Identity allowed to manage strategies and pause the vault
            min_liquidity: Assets kept in the buffer before anything is
                deployed (default: ``settings.min_liquidity``)
            auto_rebalance: Run a rebalance pass after every deposit/mint
                (default: ``settings.auto_rebalance_on_deposit``)
            address: Vault identity (generated when omitted)
        """
        super().__init__(asset, name, symbol, owner, address=address)
        self._min_liquidity = require_amount(
            settings.min_liquidity if min_liquidity is None else min_liquidity, "min_liquidity"
        )
        self._auto_rebalance = settings.auto_rebalance_on_deposit if auto_rebalance is None else auto_rebalance
        self.registry = StrategyRegistry(asset, self.address, self._journal)
        self.rebalancer = AllocationRebalancer(self)
        self.router = WithdrawalRouter(self)
        logger.info(
            f"Vault {self.symbol} created at {self.address} "
            f"(asset={asset.symbol}, min_liquidity={self._min_liquidity})"
        )

    @classmethod
    def from_settings(cls, asset: AssetToken, owner: str, address: str | None = None) -> "Vault":
        """Create a vault named and configured from ``settings``."""
        return cls(asset, settings.vault_name, settings.vault_symbol, owner, address=address)

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------

    @property
    def min_liquidity(self) -> int:
        return self._min_liquidity

    @property
    def auto_rebalance(self) -> bool:
        return self._auto_rebalance

    @property
    def total_allocation_bps(self) -> int:
        return self.registry.total_allocation_bps

    def buffer_assets(self) -> int:
        """Assets held directly by the vault."""
        return self.asset.balance_of(self.address)

    def total_assets(self) -> int:
        """Buffer plus the value of every active strategy position."""
        total = self.buffer_assets()
        for strategy_id, strategy, info in self.registry:
            total = checked_add(total, self._position_value(strategy_id, strategy, info))
        return total

    def _position_value(self, strategy_id: str, strategy: Strategy, info: StrategyInfo) -> int:
        try:
            return strategy.convert_to_assets(strategy.balance_of(self.address))
        except (VaultError, ArithmeticError) as e:
            logger.warning(f"Live value of strategy {strategy_id} unavailable, using recorded deposits: {e}")
            return info.total_deposited

    # ------------------------------------------------------------------
    # Strategy queries
    # ------------------------------------------------------------------

    def strategies(self) -> list[str]:
        """Active strategy ids in registry order."""
        return self.registry.strategies()

    def is_strategy(self, strategy_id: str) -> bool:
        return self.registry.is_strategy(strategy_id)

    def strategy_info(self, strategy_id: str) -> StrategyInfo:
        return self.registry.info(strategy_id)

    def get_strategy(self, strategy_id: str) -> Strategy:
        return self.registry.get(strategy_id)

    # ------------------------------------------------------------------
    # Deposit / withdraw extension points
    # ------------------------------------------------------------------

    def _after_deposit(self, assets: int, shares: int) -> None:
        if self._auto_rebalance and assets:
            self.rebalancer.rebalance()

    def _before_withdraw(self, assets: int) -> None:
        self.router.ensure_liquidity(assets)

    # ------------------------------------------------------------------
    # Strategy management (owner-only)
    # ------------------------------------------------------------------

    def add_strategy(self, strategy: Strategy, weight_bps: int | None = None, *, caller: str) -> StrategyInfo:
        """Register a strategy and grant it a standing allowance on the buffer."""
        self._check_owner(caller)
        weight = settings.default_allocation_bps if weight_bps is None else weight_bps
        with self._context("add_strategy"), self._journal.atomic():
            info = self.registry.add(strategy, weight)
            self.asset.approve(strategy.address, UINT256_MAX, caller=self.address)
            self._emit(
                EventType.STRATEGY_ADDED,
                strategy_id=strategy.address,
                target_allocation_bps=weight,
                total_allocation_bps=self.registry.total_allocation_bps,
            )
        logger.info(f"Strategy {strategy.address} added at {weight} bps")
        return info

    def remove_strategy(self, strategy_id: str, *, caller: str) -> int:
        """Evacuate (if funded) and deregister a strategy; returns assets recovered."""
        self._check_owner(caller)
        with self._context("remove_strategy"), self._journal.atomic():
            strategy = self.registry.get(strategy_id)
            recorded = self.registry.info(strategy_id).total_deposited
            evacuated = 0
            if recorded > 0:
                evacuated = strategy.emergency_evacuate(caller=self.address)
            self.asset.approve(strategy_id, 0, caller=self.address)
            removed = self.registry.remove(strategy_id)
            self._emit(
                EventType.STRATEGY_REMOVED,
                strategy_id=strategy_id,
                target_allocation_bps=removed.target_allocation_bps,
                written_off=recorded,
                evacuated=evacuated,
                total_allocation_bps=self.registry.total_allocation_bps,
            )
        logger.warning(f"Strategy {strategy_id} removed, evacuated {evacuated} (recorded {recorded})")
        return evacuated

    def update_allocation(self, strategy_id: str, weight_bps: int, *, caller: str) -> int:
        """Change a strategy's target weight; returns the previous weight."""
        self._check_owner(caller)
        with self._context("update_allocation"), self._journal.atomic():
            previous = self.registry.update_allocation(strategy_id, weight_bps)
            self._emit(
                EventType.STRATEGY_ALLOCATION_UPDATED,
                strategy_id=strategy_id,
                previous_bps=previous,
                target_allocation_bps=weight_bps,
                total_allocation_bps=self.registry.total_allocation_bps,
            )
        return previous

    def rebalance_now(self, *, caller: str) -> RebalanceReport:
        """Explicit rebalance pass."""
        self._check_owner(caller)
        with self._context("rebalance"), self._journal.atomic():
            return self.rebalancer.rebalance()

    def set_min_liquidity(self, amount: int, *, caller: str) -> None:
        self._check_owner(caller)
        require_amount(amount, "min_liquidity")
        with self._context("set_min_liquidity"), self._journal.atomic():
            previous, self._min_liquidity = self._min_liquidity, amount
            self._emit(EventType.MIN_LIQUIDITY_UPDATED, previous=previous, min_liquidity=amount)
        logger.info(f"min_liquidity {previous} -> {amount}")

    # ------------------------------------------------------------------
    # Harvest (owner-only)
    # ------------------------------------------------------------------

    def harvest_one(self, strategy_id: str, *, caller: str) -> HarvestResult:
        """Harvest one strategy; failures propagate."""
        self._check_owner(caller)
        with self._context("harvest"), self._journal.atomic():
            return self._harvest(strategy_id)

    def harvest_all(self, *, caller: str) -> HarvestReport:
        """Harvest every active strategy, skipping the ones that fail."""
        self._check_owner(caller)
        report = HarvestReport()
        with self._context("harvest_all"), self._journal.atomic():
            for strategy_id in self.registry.strategies():
                try:
                    with self._journal.atomic():
                        result = self._harvest(strategy_id)
                except (VaultError, ArithmeticError) as e:
                    log_exception(logger, e, context={"strategy_id": strategy_id}, level=logging.WARNING)
                    self._emit(
                        EventType.STRATEGY_CALL_FAILED,
                        strategy_id=strategy_id,
                        operation="harvest",
                        error=str(e),
                    )
                    result = HarvestResult(
                        strategy_id=strategy_id,
                        total_deposited=self.registry.info(strategy_id).total_deposited,
                        error=str(e),
                    )
                else:
                    report.total_pnl += result.pnl
                report.results.append(result)
        logger.info(f"Harvested {len(report.results)} strategies: pnl={report.total_pnl}, failed={report.failed}")
        return report

    def _harvest(self, strategy_id: str) -> HarvestResult:
        """Realize a strategy's yield and mark recorded deposits to the live value."""
        strategy = self.registry.get(strategy_id)
        previous = self.registry.info(strategy_id).total_deposited
        pnl = strategy.realize_yield(caller=self.address)
        live = strategy.convert_to_assets(strategy.balance_of(self.address))
        self.registry.set_recorded(strategy_id, live)
        recognized = live - previous
        self._emit(
            EventType.HARVEST,
            strategy_id=strategy_id,
            pnl=pnl,
            recognized=recognized,
            total_deposited=live,
        )
        return HarvestResult(strategy_id=strategy_id, pnl=pnl, recognized=recognized, total_deposited=live)
