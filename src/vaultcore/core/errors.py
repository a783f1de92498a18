"""Error taxonomy for ledger, strategy and vault operations.

Every error carries a stable ``code`` so callers (or a front-end) can map a
failure to an actionable message without parsing the text.
"""


class VaultError(Exception):
    """Base class for every failure raised by the vault core."""

    code = "vault_error"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class AuthorizationError(VaultError, PermissionError):
    """Caller is not allowed to perform the operation."""

    code = "unauthorized"


class NotOwner(AuthorizationError):
    """Caller is not the designated owner."""

    code = "not_owner"

    def __init__(self, caller: str) -> None:
        super().__init__(f"OwnableUnauthorizedAccount: {caller}")
        self.caller = caller


class NotVault(AuthorizationError):
    """Caller is not the vault bound to a strategy."""

    code = "not_vault"

    def __init__(self, caller: str) -> None:
        super().__init__(f"BaseStrategy: caller not vault ({caller})")
        self.caller = caller


class InsufficientAllowance(AuthorizationError):
    """Spender's allowance does not cover the requested amount."""

    code = "insufficient_allowance"

    def __init__(self, spender: str, allowance: int, needed: int) -> None:
        super().__init__(f"insufficient allowance for {spender}: {allowance} < {needed}")
        self.spender = spender
        self.allowance = allowance
        self.needed = needed


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(VaultError, ValueError):
    """Request is malformed or violates a registry/ledger rule."""

    code = "invalid"


class InvalidAddress(ValidationError):
    code = "invalid_address"

    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"{field}=0 (invalid address {value!r})")
        self.field = field


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class InsufficientBalance(ValidationError):
    code = "insufficient_balance"

    def __init__(self, holder: str, balance: int, needed: int) -> None:
        super().__init__(f"insufficient balance for {holder}: {balance} < {needed}")
        self.holder = holder
        self.balance = balance
        self.needed = needed


class AllocationExceeded(ValidationError):
    """Target weight exceeds 100% individually or in aggregate."""

    code = "allocation_exceeded"

    def __init__(self, requested_total: int, limit: int) -> None:
        super().__init__(f"allocation exceeds limit: {requested_total} > {limit} bps")
        self.requested_total = requested_total
        self.limit = limit


class StrategyAlreadyActive(ValidationError):
    code = "strategy_already_active"

    def __init__(self, strategy_id: str) -> None:
        super().__init__(f"strategy already active: {strategy_id}")
        self.strategy_id = strategy_id


class StrategyNotRegistered(ValidationError):
    code = "strategy_not_registered"

    def __init__(self, strategy_id: str) -> None:
        super().__init__(f"strategy not registered: {strategy_id}")
        self.strategy_id = strategy_id


class StrategyMismatch(ValidationError):
    """Strategy is bound to another vault or holds a different asset."""

    code = "strategy_mismatch"


class NativeTransferRejected(ValidationError):
    code = "native_transfer_rejected"


class LimitExceeded(ValidationError):
    """Request exceeds the ledger's max_deposit/mint/withdraw/redeem."""

    code = "limit_exceeded"
    operation = ""

    def __init__(self, account: str, requested: int, maximum: int) -> None:
        super().__init__(
            f"ERC4626ExceededMax{self.operation}: {account} requested {requested}, max {maximum}"
        )
        self.account = account
        self.requested = requested
        self.maximum = maximum


class ExceededMaxDeposit(LimitExceeded):
    code = "exceeded_max_deposit"
    operation = "Deposit"


class ExceededMaxMint(LimitExceeded):
    code = "exceeded_max_mint"
    operation = "Mint"


class ExceededMaxWithdraw(LimitExceeded):
    code = "exceeded_max_withdraw"
    operation = "Withdraw"


class ExceededMaxRedeem(LimitExceeded):
    code = "exceeded_max_redeem"
    operation = "Redeem"


# ---------------------------------------------------------------------------
# Liquidity / pause / arithmetic
# ---------------------------------------------------------------------------

class LiquidityError(VaultError):
    code = "liquidity"


class InsufficientLiquidity(LiquidityError):
    """Withdrawal cannot be fully sourced from buffer plus strategies."""

    code = "insufficient_liquidity"

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(f"insufficient strategy liquidity: requested {requested}, sourced {available}")
        self.requested = requested
        self.available = available


class PausedError(VaultError):
    code = "paused"


class EnforcedPause(PausedError):
    code = "enforced_pause"

    def __init__(self, ledger: str) -> None:
        super().__init__(f"EnforcedPause: {ledger} is paused")
        self.ledger = ledger


class ArithmeticOverflow(VaultError, ArithmeticError):
    code = "overflow"


class ArithmeticUnderflow(VaultError, ArithmeticError):
    code = "underflow"
