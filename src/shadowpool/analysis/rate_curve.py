"""Sweeps of the interest-rate curve for calibration and reporting."""

from typing import Sequence

import numpy as np
import pandas as pd

from ..config.schema import InterestRateConfig
from ..engine import interest_rate
from ..engine.fixed_point import MICROS_PER_SECOND, PRECISION, SECONDS_PER_YEAR, from_fixed

_REFERENCE_DEPOSITS = 10**12


def rate_curve(config: InterestRateConfig, n_points: int = 101) -> pd.DataFrame:
    """
    Instantaneous annual rate across utilization.

    Args:
        config: Curve parameters (carried state is used as-is)
        n_points: Number of utilization samples in [0, 1]

    Returns:
        DataFrame with columns: utilization, annual_rate
    """
    utilizations = np.linspace(0.0, 1.0, n_points)
    rates = []
    for u in utilizations:
        borrows = int(round(float(u) * _REFERENCE_DEPOSITS))
        rates.append(from_fixed(interest_rate.annual_rate(config, _REFERENCE_DEPOSITS, borrows)))

    return pd.DataFrame({
        "utilization": utilizations,
        "annual_rate": rates,
    })


def compound_table(
    config: InterestRateConfig,
    utilizations: Sequence[float] = (0.25, 0.5, 0.75, 0.9, 0.95, 1.0),
    horizons_days: Sequence[float] = (1, 30, 365),
) -> pd.DataFrame:
    """
    Compounded growth of debt for a single accrual over each horizon.

    Every cell starts from the same carried state, so rows are independent.

    Returns:
        DataFrame indexed by utilization, one column per horizon (growth as a fraction)
    """
    table = np.zeros((len(utilizations), len(horizons_days)))
    for i, u in enumerate(utilizations):
        borrows = int(round(u * _REFERENCE_DEPOSITS))
        for j, days in enumerate(horizons_days):
            elapsed = int(days * 24 * 60 * 60 * MICROS_PER_SECOND)
            result = interest_rate.accrue(config, _REFERENCE_DEPOSITS, borrows, 0, elapsed)
            table[i, j] = result.rcomp / PRECISION

    return pd.DataFrame(
        table,
        index=pd.Index(list(utilizations), name="utilization"),
        columns=[f"{days:g}d" for days in horizons_days],
    )


def linear_floor_apr(config: InterestRateConfig, utilization: float) -> float:
    """Annual rate of the linear floor alone at a utilization."""
    return config.k_lin * utilization * SECONDS_PER_YEAR / PRECISION
