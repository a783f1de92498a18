"""Allocation rebalancing between the vault buffer and its strategies."""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from vaultcore.core.errors import VaultError
from vaultcore.core.math import bps_of
from vaultcore.core.types import Event, EventType, RebalanceAction, RebalanceReport
from vaultcore.logging import get_logger, log_exception
from vaultcore.strategies.base import Strategy

if TYPE_CHECKING:
    from vaultcore.vault import Vault

logger = get_logger(__name__)

Step = Callable[[str, Strategy, int, int], RebalanceAction]


class AllocationRebalancer:
    """Moves capital toward each strategy's target weight.

    Runs a single pass over active strategies in registry order. Targets are
    a share of the deployable amount (total assets above the minimum
    liquidity buffer); current holdings are the vault's recorded deposits.
    Each per-strategy step runs in its own nested transaction: a failure is
    rolled back, logged and reported, and the pass continues.
    """

    def __init__(self, vault: "Vault") -> None:
        """Initialize the rebalancer for one vault."""
        self._vault = vault

    def rebalance(self) -> RebalanceReport:
        """Run one rebalance pass and return what happened per strategy."""
        vault = self._vault
        total = vault.total_assets()
        min_liquidity = vault.min_liquidity
        if total <= min_liquidity:
            logger.debug(f"Rebalance skipped: total_assets={total} <= min_liquidity={min_liquidity}")
            return RebalanceReport(total_assets=total, deployable=0)

        deployable = total - min_liquidity
        report = RebalanceReport(total_assets=total, deployable=deployable)

        for strategy_id, strategy, info in vault.registry:
            target = bps_of(deployable, info.target_allocation_bps)
            current = info.total_deposited
            if target > current:
                action = self._run_step(self._deploy, strategy_id, strategy, target, current)
                if action.action == "deposit":
                    report.deployed += action.amount
            elif target < current:
                action = self._run_step(self._recall, strategy_id, strategy, target, current)
                if action.action == "withdraw":
                    report.withdrawn += action.amount
            else:
                action = RebalanceAction(strategy_id=strategy_id, target=target, current=current, action="hold")
            report.actions.append(action)

        self._emit(
            EventType.REBALANCED,
            total_assets=total,
            deployable=deployable,
            deployed=report.deployed,
            withdrawn=report.withdrawn,
            skipped=report.skipped,
        )
        logger.info(
            f"Rebalanced: deployable={deployable}, deployed={report.deployed}, "
            f"withdrawn={report.withdrawn}, skipped={len(report.skipped)}"
        )
        return report

    def _run_step(
        self,
        step: Step,
        strategy_id: str,
        strategy: Strategy,
        target: int,
        current: int,
    ) -> RebalanceAction:
        try:
            with self._vault.journal.atomic():
                return step(strategy_id, strategy, target, current)
        except (VaultError, ArithmeticError) as e:
            log_exception(
                logger,
                e,
                context={"strategy_id": strategy_id, "target": target, "current": current},
                level=logging.WARNING,
            )
            self._emit(
                EventType.STRATEGY_CALL_FAILED,
                strategy_id=strategy_id,
                operation="rebalance",
                error=str(e),
            )
            return RebalanceAction(
                strategy_id=strategy_id,
                target=target,
                current=current,
                action="skipped",
                error=str(e),
            )

    def _deploy(self, strategy_id: str, strategy: Strategy, target: int, current: int) -> RebalanceAction:
        vault = self._vault
        amount = min(target - current, vault.buffer_assets())
        if amount == 0:
            return RebalanceAction(strategy_id=strategy_id, target=target, current=current, action="hold")

        strategy.deposit(amount, vault.address, caller=vault.address)
        recorded = vault.registry.record_deposit(strategy_id, amount)
        self._emit(EventType.FUNDS_DEPLOYED, strategy_id=strategy_id, amount=amount, total_deposited=recorded)
        return RebalanceAction(
            strategy_id=strategy_id, target=target, current=current, action="deposit", amount=amount
        )

    def _recall(self, strategy_id: str, strategy: Strategy, target: int, current: int) -> RebalanceAction:
        vault = self._vault
        amount = min(current - target, strategy.max_withdraw(vault.address))
        if amount == 0:
            return RebalanceAction(strategy_id=strategy_id, target=target, current=current, action="hold")

        before = vault.buffer_assets()
        strategy.withdraw(amount, vault.address, vault.address, caller=vault.address)
        recovered = vault.buffer_assets() - before
        recorded = vault.registry.record_withdrawal(strategy_id, recovered)
        self._emit(
            EventType.FUNDS_WITHDRAWN,
            strategy_id=strategy_id,
            amount=recovered,
            total_deposited=recorded,
            reason="rebalance",
        )
        return RebalanceAction(
            strategy_id=strategy_id, target=target, current=current, action="withdraw", amount=recovered
        )

    def _emit(self, event_type: EventType, **data: object) -> None:
        self._vault.journal.bus.publish(Event(event_type=event_type, source=self._vault.address, data=data))
