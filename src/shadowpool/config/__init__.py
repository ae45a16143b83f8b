"""Market configuration."""

from .loader import config_from_dict, load_config
from .schema import CoinConfig, Config, InterestRateConfig, RiskConfig, StabilityConfig

__all__ = [
    "CoinConfig",
    "Config",
    "InterestRateConfig",
    "RiskConfig",
    "StabilityConfig",
    "config_from_dict",
    "load_config",
]
