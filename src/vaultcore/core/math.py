"""Checked unsigned integer arithmetic for ledger amounts.

Amounts live in the unsigned 256-bit range of the external token ledger.
Anything leaving that range raises instead of wrapping.
"""

from enum import Enum

from vaultcore.core.errors import ArithmeticOverflow, ArithmeticUnderflow, InvalidAmount

UINT256_MAX = 2**256 - 1


class Rounding(str, Enum):
    """Rounding direction for proportional math."""

    FLOOR = "floor"
    CEIL = "ceil"


def require_amount(value: int, name: str = "amount") -> int:
    """Validate a caller-supplied amount is an unsigned 256-bit integer."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidAmount(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise InvalidAmount(f"{name} must be >= 0, got {value}")
    if value > UINT256_MAX:
        raise ArithmeticOverflow(f"{name} exceeds uint256: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > UINT256_MAX:
        raise ArithmeticOverflow(f"{a} + {b} overflows uint256")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticUnderflow(f"{a} - {b} underflows")
    return a - b


def mul_div(x: int, y: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Compute ``x * y / denominator`` with full-precision intermediate.

    The intermediate product may exceed 256 bits (as with a 512-bit
    mulDiv); only the result is range-checked.
    """
    if denominator == 0:
        raise ArithmeticOverflow("mul_div by zero")
    quotient, remainder = divmod(x * y, denominator)
    if rounding is Rounding.CEIL and remainder:
        quotient += 1
    if quotient > UINT256_MAX:
        raise ArithmeticOverflow(f"mul_div result overflows uint256: {quotient}")
    return quotient


def bps_of(amount: int, bps: int) -> int:
    """Floor ``amount * bps / 10_000``."""
    return mul_div(amount, bps, 10_000, Rounding.FLOOR)
