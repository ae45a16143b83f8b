"""shadowpool - Collateralized lending-pool accounting engine."""

from .config import Config, load_config
from .engine.errors import LedgerError
from .engine.market import ALL, LendingMarket
from .engine.pool import Side

__version__ = "0.1.0"

__all__ = ["ALL", "Config", "LedgerError", "LendingMarket", "Side", "load_config"]
