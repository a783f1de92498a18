"""In-memory fungible asset ledger (the external base-asset token).

Standard transfer semantics with integer balances. An allowance of
``UINT256_MAX`` is treated as infinite and never decremented.
"""

from decimal import Decimal

from vaultcore.config import settings
from vaultcore.core.access import new_address, require_address
from vaultcore.core.errors import InsufficientAllowance, InsufficientBalance
from vaultcore.core.journal import Journal, Stateful
from vaultcore.core.math import UINT256_MAX, checked_add, checked_sub, require_amount
from vaultcore.logging import get_logger

logger = get_logger(__name__)


class AssetToken(Stateful):
    """Fungible token ledger shared by depositors, the vault and strategies."""

    _state_fields = ("_balances", "_allowances", "_total_supply")

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int | None = None,
        address: str | None = None,
        journal: Journal | None = None,
    ) -> None:
        self.name = name
        self.symbol = symbol
        self.decimals = settings.asset_decimals if decimals is None else decimals
        self.address = address or new_address()
        self.journal = journal or Journal()
        self._balances: dict[str, int] = {}
        self._allowances: dict[str, dict[str, int]] = {}
        self._total_supply = 0
        self.journal.register(self)

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get(owner, {}).get(spender, 0)

    def unit(self, amount: int | float | str = 1) -> int:
        """Convert whole units to the smallest denomination (``unit(1000)``)."""
        return int(Decimal(str(amount)) * 10**self.decimals)

    def mint(self, to: str, amount: int) -> None:
        """Create new tokens (faucet for tests and demos)."""
        require_address(to, "to")
        require_amount(amount)
        with self.journal.atomic():
            self._total_supply = checked_add(self._total_supply, amount)
            self._balances[to] = self.balance_of(to) + amount

    def approve(self, spender: str, amount: int, *, caller: str) -> bool:
        require_address(spender, "spender")
        require_amount(amount)
        with self.journal.atomic():
            self._allowances.setdefault(caller, {})[spender] = amount
        return True

    def transfer(self, to: str, amount: int, *, caller: str) -> bool:
        with self.journal.atomic():
            self._move(caller, to, amount)
        return True

    def transfer_from(self, from_: str, to: str, amount: int, *, caller: str) -> bool:
        require_amount(amount)
        with self.journal.atomic():
            self._spend_allowance(from_, caller, amount)
            self._move(from_, to, amount)
        return True

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        current = self.allowance(owner, spender)
        if current == UINT256_MAX:
            return
        if current < amount:
            raise InsufficientAllowance(spender, current, amount)
        self._allowances.setdefault(owner, {})[spender] = current - amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        require_address(to, "to")
        require_amount(amount)
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(sender, balance, amount)
        self._balances[sender] = checked_sub(balance, amount)
        self._balances[to] = self.balance_of(to) + amount
        logger.debug(f"{self.symbol} transfer {sender} -> {to}: {amount}")
