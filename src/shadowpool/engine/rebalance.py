"""Rebalancer - Move shadow collateral between an account's coins.

Both operations repair an under-collateralized shadow position (shadow
collateral backing asset debt) without new capital:

- `rebalance` withdraws spare shadow collateral from another coin's shadow position;
- `borrow_and_rebalance` opens new shadow debt against another coin's asset
  collateral and deposits the proceeds.

Only position and shadow-ledger bookkeeping change; the shadow vault is shared,
so no funds leave the pool.
"""

import logging
from dataclasses import dataclass

from .errors import InsufficientExtra, InvalidArgument
from .pool import Pool, Side
from .positions import PositionTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RebalanceResult:
    """What a rebalance moved."""
    coin_from: str
    coin_to: str
    amount: int  # Shadow amount deposited into coin_to
    extra: int  # Value available on coin_from before the move
    insufficient: int  # Value coin_to was short by before the move
    debt_added: int = 0  # Shadow debt opened on coin_from (borrow_and_rebalance)


class Rebalancer:
    """Moves shadow collateral to keep shadow positions above their requirement."""

    def __init__(self, tracker: PositionTracker, shadow_pool: Pool):
        self.tracker = tracker
        self.shadow_pool = shadow_pool

    def _shortfall(self, account: str, coin_from: str, coin_to: str) -> int:
        if coin_from == coin_to:
            raise InvalidArgument("Rebalance needs two different coins")
        insufficient = self.tracker.insufficient_deposit(account, coin_to, Side.SHADOW)
        if insufficient <= 0:
            raise InvalidArgument(f"Shadow position {account}/{coin_to} is not under-collateralized")
        return insufficient

    def rebalance(self, account: str, coin_from: str, coin_to: str, now: int) -> RebalanceResult:
        """
        Move exactly the missing shadow collateral from coin_from to coin_to.

        coin_to ends on its requirement (insufficient_deposit == 0), which is
        utilization equal to the liquidation threshold. The strict is_safe
        check still reports such a position as unsafe.

        Only regular deposits can move; collateral-only shadow deposits do not
        count towards coin_from's extra.

        Raises:
            InvalidArgument: Same coin, or coin_to is not short
            InsufficientExtra: coin_from's spare collateral does not cover the shortfall
        """
        insufficient = self._shortfall(account, coin_from, coin_to)
        extra = self.tracker.movable_extra_deposit(account, coin_from, Side.SHADOW)
        if extra < insufficient:
            raise InsufficientExtra(
                f"Extra {extra} on {coin_from} cannot cover shortfall {insufficient} on {coin_to}"
            )

        amount = self.tracker.collateral_amount_of(coin_from, Side.SHADOW, insufficient)
        self.shadow_pool.transfer_deposit(coin_from, coin_to, amount, now)
        self.tracker.update(account, coin_from, Side.SHADOW, amount, is_deposit=True, is_increase=False)
        self.tracker.update(account, coin_to, Side.SHADOW, amount, is_deposit=True, is_increase=True)

        logger.info("Rebalanced %d shadow for %s from %s to %s", amount, account, coin_from, coin_to)
        return RebalanceResult(coin_from, coin_to, amount, extra, insufficient)

    def borrow_and_rebalance(self, account: str, coin_from: str, coin_to: str, now: int) -> RebalanceResult:
        """
        Borrow shadow against coin_from's asset collateral and deposit it as coin_to's shadow collateral.

        Raises:
            InvalidArgument: Same coin, or coin_to is not short
            InsufficientExtra: coin_from's borrowing headroom does not cover the shortfall
        """
        insufficient = self._shortfall(account, coin_from, coin_to)
        extra = self.tracker.borrowable_headroom(account, coin_from, Side.ASSET)
        if extra < insufficient:
            raise InsufficientExtra(
                f"Headroom {extra} on {coin_from} cannot cover shortfall {insufficient} on {coin_to}"
            )

        amount = self.tracker.debt_amount_of(coin_from, Side.ASSET, insufficient)
        receipt = self.shadow_pool.borrow(coin_from, amount, now)
        self.shadow_pool.deposit(coin_to, amount, now)
        self.tracker.update(account, coin_from, Side.ASSET, receipt.debt, is_deposit=False, is_increase=True)
        self.tracker.update(account, coin_to, Side.SHADOW, amount, is_deposit=True, is_increase=True)
        self.tracker.assert_safe(account, coin_from, Side.ASSET)

        logger.info(
            "Borrowed %d shadow on %s for %s and deposited it to %s", amount, coin_from, account, coin_to
        )
        return RebalanceResult(coin_from, coin_to, amount, extra, insufficient, debt_added=receipt.debt)
