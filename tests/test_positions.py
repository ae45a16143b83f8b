"""Unit tests for the position tracker."""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shadowpool.config.loader import load_config
from shadowpool.engine.collaborators import FixedPriceOracle, RiskParams
from shadowpool.engine.errors import InsufficientBalance, InvalidArgument, NotAvailable, Unsafe
from shadowpool.engine.fixed_point import PRECISION
from shadowpool.engine.pool import Side
from shadowpool.engine.positions import Position, PositionTracker


@pytest.fixture
def tracker():
    return PositionTracker(FixedPriceOracle(), RiskParams(load_config()))


def deposit(tracker, coin, side, amount, collateral_only=False):
    tracker.update("alice", coin, side, amount, is_deposit=True, is_increase=True,
                   collateral_only=collateral_only)


def borrow(tracker, coin, side, amount):
    tracker.update("alice", coin, side, amount, is_deposit=False, is_increase=True)


class TestUpdates:
    """Deposit/withdraw/borrow/repay deltas."""

    def test_untouched_position_is_empty(self, tracker):
        position = tracker.position("alice", "WETH", Side.ASSET)
        assert position == Position()
        assert position.is_empty
        assert tracker.accounts() == []

    def test_deposit_creates_position(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 1_000)
        deposit(tracker, "WETH", Side.ASSET, 300, collateral_only=True)
        position = tracker.position("alice", "WETH", Side.ASSET)
        assert position.deposited == 1_300
        assert position.collateral_only_deposited == 300
        assert tracker.accounts() == ["alice"]

    def test_sides_are_independent(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 1_000)
        assert tracker.position("alice", "WETH", Side.SHADOW).is_empty

    def test_decrease_without_position(self, tracker):
        with pytest.raises(InsufficientBalance):
            tracker.update("alice", "WETH", Side.ASSET, 1, is_deposit=True, is_increase=False)

    def test_withdraw_respects_buckets(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 300, collateral_only=True)
        with pytest.raises(InsufficientBalance):
            tracker.update("alice", "WETH", Side.ASSET, 100, is_deposit=True, is_increase=False)
        tracker.update("alice", "WETH", Side.ASSET, 100, is_deposit=True, is_increase=False,
                       collateral_only=True)
        assert tracker.position("alice", "WETH", Side.ASSET).deposited == 200

    def test_repay_more_than_borrowed(self, tracker):
        borrow(tracker, "WETH", Side.ASSET, 100)
        with pytest.raises(InsufficientBalance):
            tracker.update("alice", "WETH", Side.ASSET, 101, is_deposit=False, is_increase=False)

    def test_invalid_arguments(self, tracker):
        with pytest.raises(InvalidArgument):
            deposit(tracker, "WETH", Side.ASSET, 0)
        with pytest.raises(InvalidArgument):
            tracker.update("alice", "WETH", Side.ASSET, 10, is_deposit=False, is_increase=True,
                           collateral_only=True)


class TestActiveIndex:
    """Per-(account, side) ordered set of coins."""

    def test_insertion_order(self, tracker):
        deposit(tracker, "UNI", Side.ASSET, 10)
        deposit(tracker, "WETH", Side.ASSET, 10)
        deposit(tracker, "UNI", Side.ASSET, 10)
        assert tracker.active_coins("alice", Side.ASSET) == ["UNI", "WETH"]
        assert tracker.active_coins("alice", Side.SHADOW) == []

    def test_full_withdraw_removes_coin(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 10)
        tracker.update("alice", "WETH", Side.ASSET, 10, is_deposit=True, is_increase=False)
        assert tracker.active_coins("alice", Side.ASSET) == []

    def test_removal_checks_only_the_touched_field(self, tracker):
        """Repaying all debt drops the coin even though a deposit remains."""
        deposit(tracker, "WETH", Side.ASSET, 100)
        borrow(tracker, "WETH", Side.ASSET, 50)
        tracker.update("alice", "WETH", Side.ASSET, 50, is_deposit=False, is_increase=False)

        assert "WETH" not in tracker.active_coins("alice", Side.ASSET)
        assert tracker.position("alice", "WETH", Side.ASSET).deposited == 100


class TestSolvency:
    """Valuation and safety through the oracle."""

    def test_utilization(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 1_000)
        borrow(tracker, "WETH", Side.ASSET, 500)
        assert tracker.utilization("alice", "WETH", Side.ASSET) == PRECISION // 2
        assert tracker.is_safe("alice", "WETH", Side.ASSET)

    def test_utilization_without_deposit_is_zero(self, tracker):
        assert tracker.utilization("alice", "WETH", Side.ASSET) == 0

    def test_threshold_is_strict(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 1_000)
        borrow(tracker, "WETH", Side.ASSET, 800)  # exactly the 80% threshold
        assert not tracker.is_safe("alice", "WETH", Side.ASSET)
        with pytest.raises(Unsafe):
            tracker.assert_safe("alice", "WETH", Side.ASSET)

    def test_debt_without_collateral_is_unsafe(self, tracker):
        borrow(tracker, "WETH", Side.ASSET, 1)
        assert not tracker.is_safe("alice", "WETH", Side.ASSET)

    def test_no_debt_is_safe(self, tracker):
        assert tracker.is_safe("alice", "WETH", Side.ASSET)

    def test_shadow_side_uses_shadow_threshold(self, tracker):
        assert tracker.liquidation_threshold("WETH", Side.SHADOW) == PRECISION * 95 // 100
        assert tracker.liquidation_threshold("WETH", Side.ASSET) == PRECISION * 8 // 10
        assert tracker.ltv("WETH", Side.SHADOW) == PRECISION * 9 // 10

    def test_prices_apply_to_the_right_token(self, tracker):
        tracker.oracle.set_price("WETH", 2.0)
        deposit(tracker, "WETH", Side.SHADOW, 1_000)
        borrow(tracker, "WETH", Side.SHADOW, 500)
        assert tracker.deposited_value("alice", "WETH", Side.SHADOW) == 1_000
        assert tracker.borrowed_value("alice", "WETH", Side.SHADOW) == 1_000
        assert not tracker.is_safe("alice", "WETH", Side.SHADOW)

        deposit(tracker, "WETH", Side.ASSET, 1_000)
        assert tracker.deposited_value("alice", "WETH", Side.ASSET) == 2_000

    def test_risk_params_read_config(self, tracker):
        risk = tracker.risk
        assert risk.liquidation_fee() == PRECISION * 5 // 1000
        assert risk.stability_fee() == PRECISION * 5 // 1000
        assert risk.shadow_coin == "SHADOW"

    def test_unknown_coin_has_no_risk_params(self, tracker):
        borrow(tracker, "DOGE", Side.ASSET, 1)
        deposit(tracker, "DOGE", Side.ASSET, 1)
        with pytest.raises(NotAvailable):
            tracker.is_safe("alice", "DOGE", Side.ASSET)


class TestRequirements:
    """Required, extra and insufficient collateral values."""

    def test_required_extra_insufficient(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 1_000)
        borrow(tracker, "WETH", Side.ASSET, 400)
        assert tracker.required_deposit("alice", "WETH", Side.ASSET) == 500
        assert tracker.extra_deposit("alice", "WETH", Side.ASSET) == 500
        assert tracker.insufficient_deposit("alice", "WETH", Side.ASSET) == -500

    def test_movable_extra_excludes_collateral_only(self, tracker):
        deposit(tracker, "WETH", Side.SHADOW, 200)
        deposit(tracker, "WETH", Side.SHADOW, 800, collateral_only=True)
        borrow(tracker, "WETH", Side.SHADOW, 475)  # requirement 500 at the 95% threshold
        assert tracker.extra_deposit("alice", "WETH", Side.SHADOW) == 500
        assert tracker.movable_extra_deposit("alice", "WETH", Side.SHADOW) == 200

    def test_headroom(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 1_000)
        borrow(tracker, "WETH", Side.ASSET, 100)
        assert tracker.borrowable_headroom("alice", "WETH", Side.ASSET) == 700
        assert tracker.max_borrowable_value("alice", "WETH", Side.ASSET) == 600

    def test_snapshot_restore(self, tracker):
        deposit(tracker, "WETH", Side.ASSET, 1_000)
        snapshot = tracker.snapshot()
        deposit(tracker, "UNI", Side.ASSET, 5)
        tracker.restore(snapshot)
        assert tracker.position("alice", "UNI", Side.ASSET).is_empty
        assert tracker.active_coins("alice", Side.ASSET) == ["WETH"]
