"""Base strategy: a share ledger owned by exactly one vault."""

from contextlib import AbstractContextManager
from typing import Protocol, runtime_checkable

from vaultcore.core.access import require_address
from vaultcore.core.errors import InsufficientLiquidity, NotVault
from vaultcore.core.math import UINT256_MAX
from vaultcore.core.token import AssetToken
from vaultcore.core.types import EventType
from vaultcore.ledger.shares import ShareLedger
from vaultcore.logging import get_logger, ledger_context

logger = get_logger(__name__)


@runtime_checkable
class Strategy(Protocol):
    """What a vault needs from a strategy it registers."""

    address: str
    asset: AssetToken
    vault: str

    @property
    def paused(self) -> bool: ...

    def total_assets(self) -> int: ...

    def balance_of(self, holder: str) -> int: ...

    def convert_to_assets(self, shares: int) -> int: ...

    def max_withdraw(self, owner: str) -> int: ...

    def deposit(self, assets: int, receiver: str, *, caller: str) -> int: ...

    def withdraw(self, assets: int, receiver: str, owner: str, *, caller: str) -> int: ...

    def redeem(self, shares: int, receiver: str, owner: str, *, caller: str) -> int: ...

    def realize_yield(self, *, caller: str) -> int: ...

    def emergency_evacuate(self, *, caller: str) -> int: ...


class BaseStrategy(ShareLedger):
    """Strategy accounting unit.

    Only the bound vault may deposit, mint, withdraw or redeem. Concrete
    strategies plug into an external venue by overriding four hooks:

    - ``_deploy_funds(assets)``: invest freshly deposited assets. Default: no-op,
      assets stay idle.
    - ``_free_funds(assets) -> int``: best-effort recall so that ``assets`` are
      liquid; returns the liquid amount available toward the request. Default:
      ``min(assets, idle)``.
    - ``_deployed_assets() -> int``: value held in the venue. Default: 0.
    - ``_harvest_rewards() -> int``: pull external rewards, return PnL.
      Default: 0.
    """

    _native_rejection_message = "BaseStrategy: no ETH"

    def __init__(
        self,
        asset: AssetToken,
        vault: str,
        owner: str,
        name: str | None = None,
        symbol: str | None = None,
        address: str | None = None,
    ) -> None:
        """Initialize the strategy bound to ``vault``."""
        super().__init__(
            asset,
            name or f"{asset.name} Strategy",
            symbol or f"{asset.symbol}STRAT",
            owner,
            address=address,
        )
        self._vault = require_address(vault, "vault")

    @property
    def vault(self) -> str:
        """The only identity allowed to move assets in or out."""
        return self._vault

    # ------------------------------------------------------------------
    # Venue hooks
    # ------------------------------------------------------------------

    def _deploy_funds(self, assets: int) -> None:  # noqa: B027
        """Invest idle assets - override in subclass if needed."""

    def _free_funds(self, assets: int) -> int:
        """Recall liquidity - override in subclass if needed."""
        return min(assets, self.idle_assets())

    def _deployed_assets(self) -> int:
        """Assets held in the external venue - override in subclass if needed."""
        return 0

    def _harvest_rewards(self) -> int:
        """Realize venue rewards - override in subclass if needed."""
        return 0

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------

    def idle_assets(self) -> int:
        return self.asset.balance_of(self.address)

    def reported_managed_assets(self) -> int:
        return self.idle_assets() + self._deployed_assets()

    def total_assets(self) -> int:
        return self.reported_managed_assets()

    # ------------------------------------------------------------------
    # Ledger extension points
    # ------------------------------------------------------------------

    def _context(self, operation: str) -> AbstractContextManager[str]:
        return ledger_context(vault=self._vault, strategy_id=self.address, operation=operation)

    def _authorize_deposit(self, caller: str) -> None:
        if caller != self._vault:
            raise NotVault(caller)

    def _authorize_withdraw(self, caller: str, owner: str) -> None:
        if caller != self._vault:
            raise NotVault(caller)

    def _after_deposit(self, assets: int, shares: int) -> None:
        if assets:
            self._deploy_funds(assets)

    def _before_withdraw(self, assets: int) -> None:
        if self.idle_assets() < assets:
            self._free_funds(assets)

    def _withdraw(self, caller: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        idle = self.idle_assets()
        if idle < assets:
            raise InsufficientLiquidity(assets, idle)
        super()._withdraw(caller, receiver, owner, assets, shares)

    # ------------------------------------------------------------------
    # Privileged operations
    # ------------------------------------------------------------------

    def _check_owner_or_vault(self, caller: str) -> None:
        if caller != self._vault:
            self._check_owner(caller)

    def realize_yield(self, *, caller: str) -> int:
        """Realize venue rewards and report PnL (owner or vault)."""
        self._check_owner_or_vault(caller)
        with self._context("realize_yield"), self._journal.atomic():
            pnl = self._harvest_rewards()
            total = self.total_assets()
            self._emit(EventType.HARVEST, strategy_id=self.address, pnl=pnl, total_assets=total)
        logger.info(f"Strategy {self.symbol} harvested: pnl={pnl}, total_assets={total}")
        return pnl

    def emergency_evacuate(self, *, caller: str) -> int:
        """Recall everything and send all idle assets to the vault (owner or vault).

        Shares are not burned; the vault is expected to write the position
        off by deregistering the strategy.
        """
        self._check_owner_or_vault(caller)
        with self._context("emergency_evacuate"), self._journal.atomic():
            self._free_funds(UINT256_MAX)
            amount = self.idle_assets()
            if amount:
                self.asset.transfer(self._vault, amount, caller=self.address)
            self._emit(EventType.EMERGENCY_EVACUATED, strategy_id=self.address, amount=amount)
        logger.warning(f"Strategy {self.symbol} evacuated {amount} to vault {self._vault}")
        return amount
