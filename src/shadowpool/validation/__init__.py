"""Validation and sanity checks for market state."""

from .sanity_checks import SanityChecker, ValidationWarning, validate_market

__all__ = [
    "SanityChecker",
    "ValidationWarning",
    "validate_market"
]
