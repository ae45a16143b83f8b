"""Analysis tools for the interest-rate curve."""

from .rate_curve import compound_table, linear_floor_apr, rate_curve

__all__ = ["compound_table", "linear_floor_apr", "rate_curve"]
