"""Curve Engine - Utilization-driven compounding interest rate.

The rate has three parts:
- a linear floor `rlin = k_lin * u`,
- an integral term `ri` that drifts with `k_i * (u - u_opt)` and never falls below `rlin`,
- a penalty `rp`, ratcheting with time spent above `u_crit` (`tcrit`), or a
  low-utilization premium below `u_low`.

Over an elapsed interval the rate moves linearly, so the accrued exponent is the
integral of `max(r(t), rlin)`. That integral is turned into a compounding
multiplier `rcomp = exp(x) - 1`, clamped so a runaway rate can never lock funds
by overflowing the borrowed total.

All values are fixed-point integers scaled by PRECISION; timestamps are in
microseconds and coefficients per second.
"""

import logging
from dataclasses import dataclass

from ..config.schema import InterestRateConfig
from .errors import InvalidTimestamp
from .fixed_point import (
    AMOUNT_MAX,
    MICROS_PER_SECOND,
    PRECISION,
    SECONDS_PER_YEAR,
    exp_fixed,
    ln_fixed,
    tdiv,
    utilization,
)

logger = logging.getLogger(__name__)

RCOMP_MAX = 2**16 * PRECISION
X_MAX = ln_fixed(RCOMP_MAX + PRECISION)  # ln(RCOMP_MAX / PRECISION + 1)


@dataclass(frozen=True)
class AccrualResult:
    """Outcome of one accrual step."""
    rcomp: int  # Growth of borrowed total over the interval, fixed point
    ri: int  # New carried integral term
    tcrit: int  # New carried critical-time accumulator
    overflowed: bool = False


def _per_elapsed(value: int, elapsed_us: int) -> int:
    """Scale a per-second quantity by an elapsed time given in microseconds."""
    return tdiv(value * elapsed_us, MICROS_PER_SECOND)


def _penalty(config: InterestRateConfig, u: int, tcrit: int):
    """Penalty rate and extra slope for the current utilization."""
    if u > config.u_crit:
        excess = u - config.u_crit
        rp = tdiv(tdiv(config.k_crit * (PRECISION + tcrit), PRECISION) * excess, PRECISION)
        extra_slope = tdiv(tdiv(config.k_crit * config.beta, PRECISION) * excess, PRECISION)
        return rp, extra_slope, True
    rp = max(0, tdiv(config.k_low * (config.u_low - u), PRECISION))
    return rp, 0, False


def _integrate(r0: int, r1: int, rlin: int, slope: int, elapsed_us: int) -> int:
    """Integral of max(r(t), rlin) for a rate moving linearly from r0 to r1."""
    flat = _per_elapsed(rlin, elapsed_us)
    if r0 >= rlin and r1 >= rlin:
        return tdiv((r0 + r1) * elapsed_us, 2 * MICROS_PER_SECOND)
    if r0 < rlin and r1 < rlin:
        return flat
    # Crossing cases; slope is non-zero because r0 != r1
    if r0 >= rlin:
        return flat - tdiv((r0 - rlin) ** 2, 2 * slope)
    return flat + tdiv((r1 - rlin) ** 2, 2 * slope)


def accrue(
    config: InterestRateConfig,
    total_deposits: int,
    total_borrows: int,
    last_updated: int,
    now: int,
) -> AccrualResult:
    """
    Compute the compounding multiplier for the interval [last_updated, now].

    Args:
        config: Curve parameters with current carried state (not mutated)
        total_deposits: Deposited total of the pool
        total_borrows: Borrowed total of the pool
        last_updated: Timestamp of the previous accrual (microseconds)
        now: Current timestamp (microseconds)

    Returns:
        AccrualResult with rcomp and the carried state to store

    Raises:
        InvalidTimestamp: If now < last_updated
    """
    if now < last_updated:
        raise InvalidTimestamp(f"Timestamp {now} precedes last update {last_updated}")
    if total_deposits < 0 or total_borrows < 0:
        raise ValueError("Pool totals must be non-negative")

    elapsed = now - last_updated
    ri = config.ri
    tcrit = config.tcrit

    u = utilization(total_deposits, total_borrows)
    slope_i = tdiv(config.k_i * (u - config.u_opt), PRECISION)

    rp, extra_slope, critical = _penalty(config, u, tcrit)
    slope = slope_i + extra_slope
    if critical:
        tcrit = tcrit + _per_elapsed(config.beta, elapsed)
    else:
        tcrit = max(0, tcrit - _per_elapsed(config.beta, elapsed))

    rlin = tdiv(config.k_lin * u, PRECISION)
    ri = max(ri, rlin)
    r0 = ri + rp
    r1 = r0 + _per_elapsed(slope, elapsed)

    x = _integrate(r0, r1, rlin, slope, elapsed)
    ri = max(ri + _per_elapsed(slope_i, elapsed), rlin)

    overflowed = x >= X_MAX
    if overflowed:
        rcomp = RCOMP_MAX
    else:
        rcomp = max(0, exp_fixed(x) - PRECISION)

    # Keep total_borrows * (1 + rcomp) inside the ledger width
    if total_borrows > 0 and total_borrows * (PRECISION + rcomp) // PRECISION > AMOUNT_MAX:
        rcomp = max(0, AMOUNT_MAX * PRECISION // total_borrows - PRECISION)
        overflowed = True

    if overflowed:
        logger.warning(
            "Interest accrual overflow (u=%d, elapsed_us=%d); rcomp clamped to %d and curve state reset",
            u, elapsed, rcomp,
        )
        ri = 0
        tcrit = 0

    return AccrualResult(rcomp=rcomp, ri=ri, tcrit=tcrit, overflowed=overflowed)


def current_rate(config: InterestRateConfig, total_deposits: int, total_borrows: int) -> int:
    """Instantaneous per-second rate for the current state, fixed point."""
    u = utilization(total_deposits, total_borrows)
    rp, _, _ = _penalty(config, u, config.tcrit)
    rlin = tdiv(config.k_lin * u, PRECISION)
    return max(config.ri, rlin) + rp


def annual_rate(config: InterestRateConfig, total_deposits: int, total_borrows: int) -> int:
    """Instantaneous rate scaled to one year (simple, not compounded)."""
    return current_rate(config, total_deposits, total_borrows) * SECONDS_PER_YEAR
