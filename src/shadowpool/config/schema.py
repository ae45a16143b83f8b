"""Pydantic schema for configuration validation.

Fractions may be written as floats (0.005 = 0.5%) or as raw fixed-point
integers scaled by PRECISION. Everything is stored as fixed-point integers.
"""

import hashlib
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..engine.fixed_point import PRECISION, to_fixed


def _fixed(v):
    if v is None:
        return v
    return to_fixed(v)


class InterestRateConfig(BaseModel):
    """Piecewise interest-rate curve for one coin and side.

    Rates are per second, slopes per second squared, beta per second.
    `ri` and `tcrit` are carried state written back after every accrual.
    """
    u_opt: int = Field(gt=0, lt=PRECISION, description="Optimal utilization")
    u_crit: int = Field(gt=0, lt=PRECISION, description="Critical utilization")
    u_low: int = Field(gt=0, lt=PRECISION, description="Low utilization")
    k_i: int = Field(ge=0, description="Integral slope coefficient")
    k_crit: int = Field(ge=0, description="Penalty slope above u_crit")
    k_low: int = Field(ge=0, description="Penalty slope below u_low")
    k_lin: int = Field(ge=0, description="Linear floor coefficient")
    beta: int = Field(ge=0, description="Critical ratchet rate")
    ri: int = Field(default=0, ge=0, description="Running rate-integral floor")
    tcrit: int = Field(default=0, ge=0, description="Time spent above u_crit")

    @field_validator("u_opt", "u_crit", "u_low", mode="before")
    @classmethod
    def coerce_fraction(cls, v):
        """Accept float fractions for the utilization breakpoints."""
        return _fixed(v)

    @model_validator(mode="after")
    def validate_breakpoints(self):
        """Ensure 0 < u_low < u_opt < u_crit < PRECISION."""
        if not (self.u_low < self.u_opt < self.u_crit):
            raise ValueError(
                f"Utilization breakpoints must satisfy u_low < u_opt < u_crit, got "
                f"u_low={self.u_low}, u_opt={self.u_opt}, u_crit={self.u_crit}"
            )
        return self


class CoinConfig(BaseModel):
    """Per-coin risk parameters and optional curve overrides."""
    ltv: int = Field(gt=0, le=PRECISION, description="Loan-to-value")
    liquidation_threshold: int = Field(gt=0, le=PRECISION, description="Liquidation threshold")
    interest_rate: Optional[InterestRateConfig] = Field(default=None, description="Asset-side curve")
    shadow_interest_rate: Optional[InterestRateConfig] = Field(default=None, description="Shadow-side curve")

    @field_validator("ltv", "liquidation_threshold", mode="before")
    @classmethod
    def coerce_fraction(cls, v):
        return _fixed(v)

    @model_validator(mode="after")
    def validate_ltv(self):
        """LTV may not exceed the liquidation threshold."""
        if self.ltv > self.liquidation_threshold:
            raise ValueError("ltv must not exceed liquidation_threshold")
        return self


class RiskConfig(BaseModel):
    """Protocol-wide fee and shadow risk parameters."""
    entry_fee: int = Field(ge=0, le=PRECISION, description="Borrow entry fee")
    share_fee: int = Field(ge=0, le=PRECISION, description="Protocol share of accrued interest")
    liquidation_fee: int = Field(ge=0, le=PRECISION, description="Liquidation withdraw fee")
    shadow_ltv: int = Field(gt=0, le=PRECISION, description="LTV of shadow collateral")
    shadow_liquidation_threshold: int = Field(gt=0, le=PRECISION, description="LT of shadow collateral")

    @field_validator(
        "entry_fee", "share_fee", "liquidation_fee", "shadow_ltv", "shadow_liquidation_threshold",
        mode="before",
    )
    @classmethod
    def coerce_fraction(cls, v):
        return _fixed(v)


class StabilityConfig(BaseModel):
    """Stability reserve parameters."""
    stability_fee: int = Field(ge=0, le=PRECISION, description="Fee on reserve-backed borrows")

    @field_validator("stability_fee", mode="before")
    @classmethod
    def coerce_fraction(cls, v):
        return _fixed(v)


class Config(BaseModel):
    """Complete configuration for a lending market."""
    shadow_coin: str = Field(default="SHADOW", min_length=1, description="Shadow asset symbol")
    risk: RiskConfig
    stability: StabilityConfig
    interest_rate: InterestRateConfig = Field(description="Default curve for both sides")
    coins: Dict[str, CoinConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_coins(self):
        """The shadow symbol cannot double as a listed coin."""
        if self.shadow_coin in self.coins:
            raise ValueError(f"Coin {self.shadow_coin!r} collides with the shadow asset symbol")
        return self

    def curve_for(self, coin: str, shadow: bool) -> InterestRateConfig:
        """Fresh curve config (zeroed carried state) for a coin side."""
        coin_config = self.coins.get(coin)
        curve = None
        if coin_config is not None:
            curve = coin_config.shadow_interest_rate if shadow else coin_config.interest_rate
        curve = curve or self.interest_rate
        return curve.model_copy(update={"ri": 0, "tcrit": 0})

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
