"""Reference strategy: keeps every deposited asset idle.

Stands in for a real venue integration. ``drip`` and ``skim`` let the owner
push yield in or take assets out, which is how gains and losses are
simulated against the vault.
"""

from vaultcore.core.access import require_address
from vaultcore.core.errors import InvalidAmount
from vaultcore.core.math import require_amount
from vaultcore.core.token import AssetToken
from vaultcore.core.types import EventType
from vaultcore.logging import get_logger
from vaultcore.strategies.base import BaseStrategy

logger = get_logger(__name__)


class IdleStrategy(BaseStrategy):
    """Strategy whose venue hooks are all the defaults."""

    def __init__(
        self,
        asset: AssetToken,
        vault: str,
        owner: str,
        address: str | None = None,
    ) -> None:
        super().__init__(
            asset,
            vault,
            owner,
            name=f"Mock {asset.name} Strategy",
            symbol=f"m{asset.symbol}STRAT",
            address=address,
        )

    def drip(self, amount: int, *, caller: str) -> int:
        """Pull ``amount`` from the owner as yield; returns the new total."""
        self._check_owner(caller)
        require_amount(amount)
        if amount == 0:
            raise InvalidAmount("amount=0")
        with self._context("drip"), self._journal.atomic():
            self.asset.transfer_from(caller, self.address, amount, caller=self.address)
            total = self.total_assets()
            self._emit(EventType.YIELD_DRIPPED, strategy_id=self.address, amount=amount, total_assets=total)
        logger.info(f"Dripped {amount} into {self.symbol}, total_assets={total}")
        return total

    def skim(self, to: str, amount: int, *, caller: str) -> None:
        """Send idle assets out of the strategy (simulated loss)."""
        self._check_owner(caller)
        require_address(to, "to")
        require_amount(amount)
        with self._context("skim"), self._journal.atomic():
            self.asset.transfer(to, amount, caller=self.address)
            self._emit(EventType.SKIMMED, strategy_id=self.address, to=to, amount=amount)
