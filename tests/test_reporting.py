"""Tests for ledger export and rate curve analysis."""

import json

import pandas as pd
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shadowpool import LendingMarket, Side, load_config
from shadowpool.analysis import compound_table, linear_floor_apr, rate_curve
from shadowpool.engine.collaborators import ManualClock
from shadowpool.reporting import export_csv, export_json, positions_frame, reserves_frame


@pytest.fixture
def market():
    market = LendingMarket.with_coins(load_config(), clock=ManualClock(1_000_000))
    market.deposit("lender", "UNI", Side.SHADOW, 800_000)
    market.deposit("borrower", "WETH", Side.ASSET, 600_000)
    market.borrow("borrower", "WETH", Side.SHADOW, 300_000)
    return market


class TestFrames:
    """DataFrame views of the ledger."""

    def test_reserves_frame(self, market):
        df = reserves_frame(market)
        assert len(df) == 6  # 3 coins x 2 sides
        row = df[(df['coin'] == 'WETH') & (df['side'] == 'shadow')].iloc[0]
        assert row['total_borrowed'] == 301_500
        assert row['status'] == 'active'

    def test_positions_frame(self, market):
        df = positions_frame(market).set_index(['account', 'coin', 'side'])
        assert df.loc[('borrower', 'WETH', 'asset'), 'borrowed'] == 301_500
        assert bool(df.loc[('borrower', 'WETH', 'asset'), 'is_safe'])
        assert df.loc[('lender', 'UNI', 'shadow'), 'deposited'] == 800_000


class TestExport:
    """CSV and JSON files."""

    def test_export_csv(self, market, tmp_path):
        path = tmp_path / "reserves.csv"
        export_csv(market, str(path))
        df = pd.read_csv(path)
        assert len(df) == 6
        assert df['total_deposited'].sum() == 1_400_000

    def test_export_json(self, market, tmp_path):
        path = tmp_path / "ledger.json"
        export_json(market, str(path))
        with open(path) as f:
            data = json.load(f)

        assert data['config_hash'] == market.config.compute_hash()
        assert data['treasury'] == {'SHADOW': 1_500}
        assert len(data['reserves']) == 6
        assert len(data['positions']) == 2
        assert data['stability']['free_liquidity'] == 0


class TestRateCurve:
    """Interest-rate curve sweeps."""

    def test_rate_curve_shape(self):
        config = load_config().interest_rate
        df = rate_curve(config)
        assert len(df) == 101
        assert list(df.columns) == ['utilization', 'annual_rate']
        assert (df['annual_rate'] >= 0).all()

    def test_rate_curve_matches_linear_floor_between_breakpoints(self):
        config = load_config().interest_rate
        df = rate_curve(config)
        assert df['annual_rate'].iloc[50] == pytest.approx(linear_floor_apr(config, 0.5), rel=1e-6)
        assert df['annual_rate'].iloc[-1] > df['annual_rate'].iloc[50]

    def test_compound_table(self):
        config = load_config().interest_rate
        table = compound_table(config)
        assert table.shape == (6, 3)
        assert list(table.columns) == ['1d', '30d', '365d']
        assert (table['365d'] >= table['1d']).all()
