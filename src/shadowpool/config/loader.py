"""Load market configuration from YAML or plain dictionaries."""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .schema import Config

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_config(yaml_path: Optional[Union[str, Path]] = None) -> Config:
    """
    Build a market Config from a YAML file.

    Fractions in the file may be floats (0.005) or fixed-point integers.

    Args:
        yaml_path: Market YAML; the packaged defaults (WETH, UNI, USDC) when omitted

    Returns:
        Validated Config with every fraction in fixed point
    """
    path = Path(yaml_path) if yaml_path is not None else DEFAULTS_PATH
    with path.open('r') as f:
        data = yaml.safe_load(f) or {}
    return Config.from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> Config:
    """Validate a config mapping, e.g. a modified `Config.to_dict()` in tests."""
    return Config.from_dict(data)
