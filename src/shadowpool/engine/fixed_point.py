"""Fixed-point helpers shared by every ledger module."""

from decimal import ROUND_FLOOR, Decimal, localcontext

PRECISION = 10**18  # One shared scale for fractions, rates and prices
AMOUNT_MAX = 2**128 - 1  # Ledger integer width (unsigned 128 bit)
MICROS_PER_SECOND = 1_000_000
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

_EXP_DIGITS = 80


def tdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero for signed operands."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def to_fixed(value) -> int:
    """
    Convert a fraction to fixed point.

    Integers are taken as already scaled; floats, strings and Decimals are
    treated as plain fractions (0.005 -> 0.5%).
    """
    if isinstance(value, bool):
        raise TypeError("Boolean is not a fixed-point value")
    if isinstance(value, int):
        return value
    return int((Decimal(str(value)) * PRECISION).to_integral_value(rounding=ROUND_FLOOR))


def from_fixed(value: int) -> float:
    """Fixed point to float, for reporting only."""
    return value / PRECISION


def utilization(total_deposits: int, total_borrows: int) -> int:
    """Borrowed share of deposits, clamped to [0, PRECISION]."""
    if total_deposits <= 0 or total_borrows <= 0:
        return 0
    return min(PRECISION, total_borrows * PRECISION // total_deposits)


def exp_fixed(x: int) -> int:
    """exp(x / PRECISION) * PRECISION, floored. Deterministic for equal inputs."""
    with localcontext() as ctx:
        ctx.prec = _EXP_DIGITS
        result = (Decimal(x) / PRECISION).exp() * PRECISION
        return int(result.to_integral_value(rounding=ROUND_FLOOR))


def ln_fixed(x: int) -> int:
    """ln(x / PRECISION) * PRECISION, floored. x must be positive."""
    with localcontext() as ctx:
        ctx.prec = _EXP_DIGITS
        result = (Decimal(x) / PRECISION).ln() * PRECISION
        return int(result.to_integral_value(rounding=ROUND_FLOOR))
