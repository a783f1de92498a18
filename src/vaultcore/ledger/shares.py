"""Share ledger: proportional ownership of a pool of a single asset.

Share price follows the ERC-4626 convention with a virtual share and a
virtual asset (offset 0), so the first deposit into an empty ledger is 1:1
and an empty ledger never divides by zero:

    shares = assets * (supply + 1) / (total_assets + 1)
    assets = shares * (total_assets + 1) / (supply + 1)

Rounding always favours the ledger: floor for shares minted on deposit and
assets paid on redeem, ceil for assets charged on mint and shares burned on
withdraw.
"""

from contextlib import AbstractContextManager

from vaultcore.core.access import Ownable, new_address, require_address
from vaultcore.core.errors import (
    EnforcedPause,
    ExceededMaxDeposit,
    ExceededMaxMint,
    ExceededMaxRedeem,
    ExceededMaxWithdraw,
    InsufficientAllowance,
    InsufficientBalance,
    NativeTransferRejected,
)
from vaultcore.core.journal import Journal, Stateful
from vaultcore.core.math import (
    UINT256_MAX,
    Rounding,
    checked_add,
    checked_sub,
    mul_div,
    require_amount,
)
from vaultcore.core.token import AssetToken
from vaultcore.core.types import Event, EventType
from vaultcore.logging import get_logger, ledger_context

logger = get_logger(__name__)


class ShareLedger(Stateful, Ownable):
    """Base share ledger with deposit/mint/withdraw/redeem and share transfers.

    Subclasses customise behaviour through a fixed set of extension points:

    - ``total_assets()``: assets under management (default: own token balance)
    - ``_authorize_deposit(caller)`` / ``_authorize_withdraw(caller, owner)``
    - ``_after_deposit(assets, shares)``: runs inside the deposit transaction
    - ``_before_withdraw(assets)``: runs inside the withdraw
      transaction before shares are burned and assets leave; the
      withdrawal is already priced, so price moves here are not charged
      to the withdrawer
    """

    _state_fields = ("_balances", "_allowances", "_total_supply", "_paused", "_owner")
    _native_rejection_message = "Vault doesn't allow direct payments."

    def __init__(
        self,
        asset: AssetToken,
        name: str,
        symbol: str,
        owner: str,
        address: str | None = None,
    ) -> None:
        """Initialize the ledger and register it with the asset's journal."""
        self.asset = asset
        self.name = name
        self.symbol = symbol
        self.decimals = asset.decimals
        self.address = address or new_address()
        self._owner = require_address(owner, "owner")
        self._journal = asset.journal
        self._balances: dict[str, int] = {}
        self._allowances: dict[str, dict[str, int]] = {}
        self._total_supply = 0
        self._paused = False
        self._journal.register(self)

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------

    @property
    def journal(self) -> Journal:
        return self._journal

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get(owner, {}).get(spender, 0)

    def total_assets(self) -> int:
        """Assets under management."""
        return self.asset.balance_of(self.address)

    def _convert_to_shares(self, assets: int, rounding: Rounding) -> int:
        return mul_div(assets, self._total_supply + 1, self.total_assets() + 1, rounding)

    def _convert_to_assets(self, shares: int, rounding: Rounding) -> int:
        return mul_div(shares, self.total_assets() + 1, self._total_supply + 1, rounding)

    def convert_to_shares(self, assets: int) -> int:
        return self._convert_to_shares(require_amount(assets), Rounding.FLOOR)

    def convert_to_assets(self, shares: int) -> int:
        return self._convert_to_assets(require_amount(shares), Rounding.FLOOR)

    def preview_deposit(self, assets: int) -> int:
        return self._convert_to_shares(require_amount(assets), Rounding.FLOOR)

    def preview_mint(self, shares: int) -> int:
        return self._convert_to_assets(require_amount(shares), Rounding.CEIL)

    def preview_withdraw(self, assets: int) -> int:
        return self._convert_to_shares(require_amount(assets), Rounding.CEIL)

    def preview_redeem(self, shares: int) -> int:
        return self._convert_to_assets(require_amount(shares), Rounding.FLOOR)

    def max_deposit(self, receiver: str) -> int:
        return 0 if self._paused else UINT256_MAX

    def max_mint(self, receiver: str) -> int:
        return 0 if self._paused else UINT256_MAX

    def max_withdraw(self, owner: str) -> int:
        return self._convert_to_assets(self.balance_of(owner), Rounding.FLOOR)

    def max_redeem(self, owner: str) -> int:
        return self.balance_of(owner)

    # ------------------------------------------------------------------
    # Extension points
    # ------------------------------------------------------------------

    def _context(self, operation: str) -> AbstractContextManager[str]:
        return ledger_context(vault=self.address, operation=operation)

    def _authorize_deposit(self, caller: str) -> None:
        """Anyone may deposit into the base ledger."""

    def _authorize_withdraw(self, caller: str, owner: str) -> None:
        """Delegates are checked through share allowance in ``_withdraw``."""

    def _after_deposit(self, assets: int, shares: int) -> None:
        """Hook run after shares are minted."""

    def _before_withdraw(self, assets: int) -> None:
        """Hook run before shares are burned and assets are sent."""

    # ------------------------------------------------------------------
    # Deposit / mint / withdraw / redeem
    # ------------------------------------------------------------------

    def deposit(self, assets: int, receiver: str, *, caller: str) -> int:
        """Deposit exactly ``assets`` and mint shares to ``receiver``."""
        require_amount(assets, "assets")
        require_address(receiver, "receiver")
        self._authorize_deposit(caller)
        self._require_not_paused()
        maximum = self.max_deposit(receiver)
        if assets > maximum:
            raise ExceededMaxDeposit(receiver, assets, maximum)
        with self._context("deposit"), self._journal.atomic():
            shares = self.preview_deposit(assets)
            self._deposit(caller, receiver, assets, shares)
        return shares

    def mint(self, shares: int, receiver: str, *, caller: str) -> int:
        """Mint exactly ``shares`` to ``receiver``, charging the rounded-up assets."""
        require_amount(shares, "shares")
        require_address(receiver, "receiver")
        self._authorize_deposit(caller)
        self._require_not_paused()
        maximum = self.max_mint(receiver)
        if shares > maximum:
            raise ExceededMaxMint(receiver, shares, maximum)
        with self._context("mint"), self._journal.atomic():
            assets = self.preview_mint(shares)
            self._deposit(caller, receiver, assets, shares)
        return assets

    def withdraw(self, assets: int, receiver: str, owner: str, *, caller: str) -> int:
        """Burn the shares needed to send exactly ``assets`` to ``receiver``."""
        require_amount(assets, "assets")
        require_address(receiver, "receiver")
        require_address(owner, "owner")
        self._authorize_withdraw(caller, owner)
        with self._context("withdraw"), self._journal.atomic():
            # Quoted at the pre-routing price: sourcing liquidity may lose rounding.
            maximum = self.max_withdraw(owner)
            shares = self.preview_withdraw(min(assets, maximum))
            self._before_withdraw(assets)
            if assets > maximum:
                raise ExceededMaxWithdraw(owner, assets, maximum)
            self._withdraw(caller, receiver, owner, assets, shares)
        return shares

    def redeem(self, shares: int, receiver: str, owner: str, *, caller: str) -> int:
        """Burn exactly ``shares`` and send the rounded-down assets to ``receiver``."""
        require_amount(shares, "shares")
        require_address(receiver, "receiver")
        require_address(owner, "owner")
        self._authorize_withdraw(caller, owner)
        maximum = self.max_redeem(owner)
        if shares > maximum:
            raise ExceededMaxRedeem(owner, shares, maximum)
        with self._context("redeem"), self._journal.atomic():
            assets = self.preview_redeem(shares)
            self._before_withdraw(assets)
            self._withdraw(caller, receiver, owner, assets, shares)
        return assets

    def _deposit(self, caller: str, receiver: str, assets: int, shares: int) -> None:
        self.asset.transfer_from(caller, self.address, assets, caller=self.address)
        self._mint(receiver, shares)
        self._emit(
            EventType.DEPOSIT,
            sender=caller,
            owner=receiver,
            assets=assets,
            shares=shares,
        )
        self._after_deposit(assets, shares)

    def _withdraw(self, caller: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        if caller != owner:
            self._spend_allowance(owner, caller, shares)
        self._burn(owner, shares)
        self.asset.transfer(receiver, assets, caller=self.address)
        self._emit(
            EventType.WITHDRAW,
            sender=caller,
            receiver=receiver,
            owner=owner,
            assets=assets,
            shares=shares,
        )

    # ------------------------------------------------------------------
    # Share transfers
    # ------------------------------------------------------------------

    def transfer(self, to: str, shares: int, *, caller: str) -> bool:
        require_amount(shares, "shares")
        require_address(to, "to")
        with self._journal.atomic():
            self._move(caller, to, shares)
        return True

    def approve(self, spender: str, shares: int, *, caller: str) -> bool:
        require_amount(shares, "shares")
        require_address(spender, "spender")
        with self._journal.atomic():
            self._allowances.setdefault(caller, {})[spender] = shares
            self._emit(EventType.APPROVAL, owner=caller, spender=spender, shares=shares)
        return True

    def transfer_from(self, from_: str, to: str, shares: int, *, caller: str) -> bool:
        require_amount(shares, "shares")
        require_address(to, "to")
        with self._journal.atomic():
            self._spend_allowance(from_, caller, shares)
            self._move(from_, to, shares)
        return True

    def receive_native(self, value: int, *, caller: str) -> None:
        """Direct native-currency payments are always refused."""
        raise NativeTransferRejected(self._native_rejection_message)

    # ------------------------------------------------------------------
    # Pause
    # ------------------------------------------------------------------

    def set_paused(self, paused: bool, *, caller: str) -> None:
        """Owner-only pause switch: blocks deposit/mint, never exits."""
        self._check_owner(caller)
        with self._context("set_paused"), self._journal.atomic():
            self._paused = bool(paused)
            self._emit(EventType.PAUSE_UPDATED, paused=self._paused)
        logger.info(f"{self.symbol} paused={self._paused}")

    def set_emergency_shutdown(self, active: bool, *, caller: str) -> None:
        self.set_paused(active, caller=caller)

    def _require_not_paused(self) -> None:
        if self._paused:
            raise EnforcedPause(self.symbol)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _mint(self, to: str, shares: int) -> None:
        self._total_supply = checked_add(self._total_supply, shares)
        self._balances[to] = self.balance_of(to) + shares

    def _burn(self, owner: str, shares: int) -> None:
        balance = self.balance_of(owner)
        if balance < shares:
            raise InsufficientBalance(owner, balance, shares)
        self._balances[owner] = balance - shares
        self._total_supply = checked_sub(self._total_supply, shares)

    def _move(self, sender: str, to: str, shares: int) -> None:
        balance = self.balance_of(sender)
        if balance < shares:
            raise InsufficientBalance(sender, balance, shares)
        self._balances[sender] = balance - shares
        self._balances[to] = self.balance_of(to) + shares
        self._emit(EventType.TRANSFER, sender=sender, to=to, shares=shares)

    def _spend_allowance(self, owner: str, spender: str, shares: int) -> None:
        current = self.allowance(owner, spender)
        if current == UINT256_MAX:
            return
        if current < shares:
            raise InsufficientAllowance(spender, current, shares)
        self._allowances.setdefault(owner, {})[spender] = current - shares

    def _emit(self, event_type: EventType, **data: object) -> None:
        self._journal.bus.publish(Event(event_type=event_type, source=self.address, data=data))
