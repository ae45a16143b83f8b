"""Smoke tests for configuration and package wiring.

These tests verify basic functionality without deep validation.
Run these first to catch obvious breakage.
"""

import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pydantic import ValidationError

from shadowpool import ALL, LendingMarket, Side
from shadowpool.config.loader import config_from_dict, load_config
from shadowpool.config.schema import Config, InterestRateConfig
from shadowpool.engine.fixed_point import PRECISION, to_fixed, utilization


class TestConfigLoading:
    """Smoke tests for configuration loading."""

    def test_load_default_config(self):
        """Config loads without errors."""
        config = load_config()
        assert config is not None
        assert isinstance(config, Config)

    def test_config_has_required_sections(self):
        """Config contains all expected sections."""
        config = load_config()
        assert hasattr(config, 'risk')
        assert hasattr(config, 'stability')
        assert hasattr(config, 'interest_rate')
        assert set(config.coins) == {'WETH', 'UNI', 'USDC'}
        assert config.shadow_coin == 'SHADOW'

    def test_config_hash_is_deterministic(self):
        """Same config produces same hash."""
        config1 = load_config()
        config2 = load_config()
        assert config1.compute_hash() == config2.compute_hash()

    def test_fractions_become_fixed_point(self):
        """Float fractions in YAML are stored scaled by PRECISION."""
        config = load_config()
        assert config.risk.entry_fee == 5 * 10**15
        assert config.coins['WETH'].liquidation_threshold == 8 * 10**17
        assert config.interest_rate.u_opt == PRECISION // 2

    def test_round_trip_through_dict(self):
        """to_dict output rebuilds an identical config."""
        config = load_config()
        rebuilt = config_from_dict(config.to_dict())
        assert rebuilt.compute_hash() == config.compute_hash()

    def test_load_custom_yaml(self, tmp_path):
        """A market file may be given as str or Path."""
        path = tmp_path / "market.yaml"
        path.write_text(
            "shadow_coin: sUSD\n"
            "risk: {entry_fee: 0.01, share_fee: 0.2, liquidation_fee: 0.0,"
            " shadow_ltv: 0.9, shadow_liquidation_threshold: 0.95}\n"
            "stability: {stability_fee: 0.005}\n"
            "interest_rate: {u_opt: 0.5, u_crit: 0.9, u_low: 0.3,"
            " k_i: 0, k_crit: 0, k_low: 0, k_lin: 1000, beta: 0}\n"
            "coins:\n"
            "  WBTC: {ltv: 0.7, liquidation_threshold: 0.75}\n"
        )
        for source in (path, str(path)):
            config = load_config(source)
            assert config.shadow_coin == "sUSD"
            assert set(config.coins) == {"WBTC"}
            assert config.risk.entry_fee == PRECISION // 100


class TestConfigValidation:
    """Schema rejects inconsistent parameters."""

    def _curve(self, **overrides):
        data = load_config().interest_rate.model_dump()
        data.update(overrides)
        return InterestRateConfig(**data)

    def test_breakpoints_must_be_ordered(self):
        with pytest.raises(ValidationError):
            self._curve(u_low=0.6)  # above u_opt

    def test_breakpoint_must_stay_below_precision(self):
        with pytest.raises(ValidationError):
            self._curve(u_crit=1.0)

    def test_ltv_above_threshold_rejected(self):
        data = load_config().to_dict()
        data['coins']['WETH']['ltv'] = 0.9
        with pytest.raises(ValidationError):
            Config.from_dict(data)

    def test_shadow_symbol_cannot_be_a_coin(self):
        data = load_config().to_dict()
        data['coins']['SHADOW'] = {'ltv': 0.5, 'liquidation_threshold': 0.6}
        with pytest.raises(ValidationError):
            Config.from_dict(data)

    def test_curve_for_returns_fresh_state(self):
        config = load_config()
        config.interest_rate.ri = 123
        curve = config.curve_for('WETH', shadow=False)
        assert curve.ri == 0
        assert curve.tcrit == 0
        assert curve is not config.interest_rate

    def test_per_coin_curve_override(self):
        data = load_config().to_dict()
        override = dict(data['interest_rate'], k_lin=42)
        data['coins']['UNI']['shadow_interest_rate'] = override
        config = Config.from_dict(data)
        assert config.curve_for('UNI', shadow=True).k_lin == 42
        assert config.curve_for('UNI', shadow=False).k_lin == data['interest_rate']['k_lin']


class TestFixedPoint:
    """Fixed-point helpers."""

    def test_to_fixed(self):
        assert to_fixed(0.5) == PRECISION // 2
        assert to_fixed(7) == 7
        assert to_fixed("0.001") == 10**15

    def test_to_fixed_rejects_bool(self):
        with pytest.raises(TypeError):
            to_fixed(True)

    def test_utilization_is_clamped(self):
        assert utilization(0, 100) == 0
        assert utilization(100, 0) == 0
        assert utilization(100, 50) == PRECISION // 2
        assert utilization(100, 250) == PRECISION


class TestPackageExports:
    """Top-level names are importable."""

    def test_exports(self):
        assert Side.ASSET.opposite is Side.SHADOW
        assert repr(ALL) == 'ALL'
        market = LendingMarket.with_coins(load_config())
        assert market.reserve('WETH', Side.SHADOW).total_deposited == 0
