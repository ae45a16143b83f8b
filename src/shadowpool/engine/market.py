"""Lending market - The user-facing façade over pools, positions and the stability reserve.

Every mutating verb runs as one atomic unit: the target pool accrues, ledger
totals change, the caller's position changes, and borrow/withdraw assert
safety last. Any raised error restores every ledger component to the state it
had before the call.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Optional

from ..config.schema import Config
from .collaborators import FixedPriceOracle, RiskParams, Treasury, system_clock
from .errors import InvalidArgument, NotInitialized
from .pool import BorrowReceipt, PoolReserve, Side, make_pools
from .positions import Position, PositionTracker
from .rebalance import RebalanceResult, Rebalancer
from .stability import StabilityReserve

logger = logging.getLogger(__name__)


class _All:
    """Sentinel for withdrawing a whole balance."""

    def __repr__(self):
        return "ALL"


ALL = _All()


class LendingMarket:
    """Single service object holding every reserve and position."""

    def __init__(
        self,
        config: Config,
        oracle=None,
        treasury=None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the market.

        Args:
            config: Market configuration
            oracle: Price oracle (defaults to a 1:1 FixedPriceOracle)
            treasury: Fee sink (defaults to an in-memory Treasury)
            clock: Callable returning the current time in microseconds
        """
        self.config = config
        self.risk = RiskParams(config)
        self.oracle = oracle if oracle is not None else FixedPriceOracle()
        self.treasury = treasury if treasury is not None else Treasury()
        self.clock = clock or system_clock
        self.shadow_coin = config.shadow_coin

        self.stability = StabilityReserve(
            self.risk.stability_fee(), fee_sink=self.treasury, shadow_coin=self.shadow_coin
        )
        self.pools = make_pools(self.risk, self.treasury, self.stability, self.shadow_coin)
        self.tracker = PositionTracker(self.oracle, self.risk)
        self.rebalancer = Rebalancer(self.tracker, self.pools[Side.SHADOW])

    @classmethod
    def with_coins(cls, config: Config, **kwargs) -> 'LendingMarket':
        """Market with every configured coin initialized on both sides."""
        market = cls(config, **kwargs)
        for coin in config.coins:
            market.init_coin(coin)
        return market

    def _components(self):
        return [*self.pools.values(), self.stability, self.tracker, self.treasury]

    @contextmanager
    def _atomic(self, operation: str):
        snapshots = [(component, component.snapshot()) for component in self._components()]
        try:
            yield
        except Exception as exc:
            for component, snapshot in snapshots:
                component.restore(snapshot)
            logger.debug("%s aborted and rolled back: %s", operation, exc)
            raise

    # Lifecycle

    def init_coin(self, coin: str) -> None:
        """Initialize both sides of a coin. Fails with AlreadyExists if either exists."""
        if coin not in self.config.coins:
            raise NotInitialized(f"No configuration for coin {coin}")
        with self._atomic("init_coin"):
            for side, pool in self.pools.items():
                pool.init(coin, self.config.curve_for(coin, shadow=side is Side.SHADOW))

    def pause(self, coin: str, side: Side) -> None:
        self.pools[side].pause(coin)

    def unpause(self, coin: str, side: Side) -> None:
        self.pools[side].unpause(coin)

    def accrue(self, coin: str, side: Side) -> int:
        with self._atomic("accrue"):
            return self.pools[side].accrue(coin, self.clock())

    # Views

    def reserve(self, coin: str, side: Side) -> PoolReserve:
        return self.pools[side].reserve(coin)

    def position(self, account: str, coin: str, side: Side) -> Position:
        return self.tracker.position(account, coin, side)

    def is_safe(self, account: str, coin: str, side: Side) -> bool:
        return self.tracker.is_safe(account, coin, side)

    # User-facing verbs

    def deposit(self, account: str, coin: str, side: Side, amount: int, collateral_only: bool = False) -> None:
        """Deposit on a side; the deposit becomes collateral of the (coin, side) position."""
        with self._atomic("deposit"):
            self.pools[side].deposit(coin, amount, self.clock(), collateral_only=collateral_only)
            self.tracker.update(
                account, coin, side, amount, is_deposit=True, is_increase=True, collateral_only=collateral_only
            )

    def withdraw(self, account: str, coin: str, side: Side, amount, collateral_only: bool = False) -> int:
        """
        Withdraw collateral. `ALL` resolves to the caller's collateral-only or regular deposit.

        Returns:
            Amount withdrawn
        """
        with self._atomic("withdraw"):
            if amount is ALL:
                position = self.tracker.position(account, coin, side)
                amount = position.collateral_only_deposited if collateral_only else (
                    position.deposited - position.collateral_only_deposited
                )
                if amount == 0:
                    raise InvalidArgument(f"Nothing to withdraw for {account}/{coin}/{side.value}")
            self.pools[side].withdraw(coin, amount, self.clock(), collateral_only=collateral_only)
            self.tracker.update(
                account, coin, side, amount, is_deposit=True, is_increase=False, collateral_only=collateral_only
            )
            self.tracker.assert_safe(account, coin, side)
        return amount

    def borrow(self, account: str, coin: str, side: Side, amount: int) -> BorrowReceipt:
        """Borrow from a side's pool; the debt lands on the opposite-side collateral position."""
        with self._atomic("borrow"):
            receipt = self.pools[side].borrow(coin, amount, self.clock())
            self.tracker.update(account, coin, side.opposite, receipt.debt, is_deposit=False, is_increase=True)
            self.tracker.assert_safe(account, coin, side.opposite)
        return receipt

    def repay(self, account: str, coin: str, side: Side, amount: int) -> int:
        """Repay debt owed to a side's pool."""
        with self._atomic("repay"):
            self.pools[side].repay(coin, amount, self.clock())
            self.tracker.update(account, coin, side.opposite, amount, is_deposit=False, is_increase=False)
        return amount

    def rebalance(self, account: str, coin_from: str, coin_to: str) -> RebalanceResult:
        with self._atomic("rebalance"):
            return self.rebalancer.rebalance(account, coin_from, coin_to, self.clock())

    def borrow_and_rebalance(self, account: str, coin_from: str, coin_to: str) -> RebalanceResult:
        with self._atomic("borrow_and_rebalance"):
            return self.rebalancer.borrow_and_rebalance(account, coin_from, coin_to, self.clock())

    # Stability reserve and fees

    def deposit_stability(self, account: str, amount: int) -> None:
        with self._atomic("deposit_stability"):
            self.stability.deposit(account, amount)

    def withdraw_stability(self, account: str, amount: int) -> None:
        with self._atomic("withdraw_stability"):
            self.stability.withdraw(account, amount)

    def harvest_protocol_fees(self, coin: str, side: Side) -> int:
        with self._atomic("harvest_protocol_fees"):
            pool = self.pools[side]
            pool.accrue(coin, self.clock())
            return pool.harvest_protocol_fees(coin)

    def collect_stability_fees(self) -> int:
        with self._atomic("collect_stability_fees"):
            return self.stability.collect_fees()
