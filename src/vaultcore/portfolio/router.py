"""Withdrawal liquidity routing: buffer first, then strategies in registry order."""

from typing import TYPE_CHECKING

from vaultcore.core.errors import InsufficientLiquidity
from vaultcore.core.types import Event, EventType
from vaultcore.logging import get_logger

if TYPE_CHECKING:
    from vaultcore.vault import Vault

logger = get_logger(__name__)


class WithdrawalRouter:
    """Makes sure the vault buffer can pay out a withdrawal.

    Runs inside the vault's withdrawal transaction. Strategy failures
    propagate; an unfillable shortfall raises ``InsufficientLiquidity`` and
    the enclosing transaction rolls back every pull made so far.
    """

    def __init__(self, vault: "Vault") -> None:
        self._vault = vault

    def ensure_liquidity(self, requested: int) -> int:
        """Top up the buffer to ``requested``; returns the amount pulled from strategies."""
        vault = self._vault
        buffer = vault.buffer_assets()
        if buffer >= requested:
            return 0

        shortfall = requested - buffer
        sourced = 0
        for strategy_id, strategy, info in vault.registry:
            if sourced >= shortfall:
                break
            ask = min(shortfall - sourced, info.total_deposited, strategy.max_withdraw(vault.address))
            if ask == 0:
                continue

            before = vault.buffer_assets()
            strategy.withdraw(ask, vault.address, vault.address, caller=vault.address)
            received = vault.buffer_assets() - before
            recorded = vault.registry.record_withdrawal(strategy_id, received)
            sourced += received
            vault.journal.bus.publish(
                Event(
                    event_type=EventType.FUNDS_WITHDRAWN,
                    source=vault.address,
                    data={
                        "strategy_id": strategy_id,
                        "amount": received,
                        "total_deposited": recorded,
                        "reason": "withdrawal",
                    },
                )
            )
            logger.debug(f"Sourced {received} from strategy {strategy_id} ({sourced}/{shortfall})")

        if sourced < shortfall:
            raise InsufficientLiquidity(requested, buffer + sourced)
        return sourced
