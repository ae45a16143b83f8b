"""Ledger error taxonomy.

Every precondition failure aborts the whole operation with one of these.
They subclass ValueError so callers that treat bad input generically keep working.
"""


class LedgerError(ValueError):
    """Base class for all ledger failures."""


class InvalidArgument(LedgerError):
    """Zero or negative amount, or a request that makes no sense."""


class NotAvailable(LedgerError):
    """Pool is paused or was never initialized."""


class AlreadyExists(LedgerError):
    """Pool already initialized."""


class NotInitialized(LedgerError):
    """Lifecycle call on a pool that does not exist."""


class InsufficientBalance(LedgerError):
    """Withdraw or repay exceeds the held amount."""


class InsufficientLiquidity(LedgerError):
    """Borrow or withdraw exceeds available funds plus backstop."""


class InsufficientExtra(LedgerError):
    """Source position cannot cover the target's shortfall."""


class Unsafe(LedgerError):
    """Post-operation utilization reached the liquidation threshold."""


class InvalidTimestamp(LedgerError):
    """Clock went backwards relative to the last accrual."""


class Overflow(LedgerError):
    """Amount exceeds the ledger integer width."""
