"""Position Tracker - Per-account balances and solvency.

A position is keyed by (account, coin, side) where side is the collateral side:
`deposited` is held on that side and `borrowed` is debt drawn from the opposite
side of the same coin. Asset collateral backs shadow debt; shadow collateral
backs asset debt.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .errors import InsufficientBalance, InvalidArgument, Unsafe
from .fixed_point import PRECISION
from .pool import Side

logger = logging.getLogger(__name__)


@dataclass
class Position:
    """Balances of one account for one coin on one collateral side."""
    deposited: int = 0  # Includes the collateral-only part
    collateral_only_deposited: int = 0
    borrowed: int = 0

    @property
    def is_empty(self) -> bool:
        return self.deposited == 0 and self.borrowed == 0


class PositionTracker:
    """Stores positions and answers solvency questions through the oracle."""

    def __init__(self, oracle, risk):
        """
        Initialize tracker.

        Args:
            oracle: Price source with value_of / amount_of
            risk: Risk parameter source with ltv / liquidation_threshold
        """
        self.oracle = oracle
        self.risk = risk
        self.positions: Dict[Tuple[str, str, Side], Position] = {}
        # Insertion-ordered set of coins per (account, side)
        self.active: Dict[Tuple[str, Side], Dict[str, None]] = {}

    @property
    def shadow_coin(self) -> str:
        return self.risk.shadow_coin

    def position(self, account: str, coin: str, side: Side) -> Position:
        """Current balances; a zero Position if never touched."""
        return self.positions.get((account, coin, side), Position())

    def active_coins(self, account: str, side: Side) -> List[str]:
        return list(self.active.get((account, side), {}))

    def accounts(self) -> List[str]:
        return sorted({account for account, _, _ in self.positions})

    def update(
        self,
        account: str,
        coin: str,
        side: Side,
        amount: int,
        is_deposit: bool,
        is_increase: bool,
        collateral_only: bool = False,
    ) -> Position:
        """
        Apply one delta to a position: deposit+, withdraw-, borrow+ or repay-.

        The coin leaves the account's active index when the field touched by
        this update reaches zero, even if the other field is still non-zero.
        """
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        if collateral_only and not is_deposit:
            raise InvalidArgument("Collateral-only applies to deposits only")

        key = (account, coin, side)
        position = self.positions.get(key)
        if position is None:
            if not is_increase:
                raise InsufficientBalance(f"No {side.value} position for {account}/{coin}")
            position = self.positions[key] = Position()

        index = self.active.setdefault((account, side), {})
        if is_increase:
            if is_deposit:
                position.deposited += amount
                if collateral_only:
                    position.collateral_only_deposited += amount
            else:
                position.borrowed += amount
            index[coin] = None
        elif is_deposit:
            held = position.collateral_only_deposited if collateral_only else (
                position.deposited - position.collateral_only_deposited
            )
            if amount > held:
                raise InsufficientBalance(
                    f"Withdraw of {amount} exceeds deposited {held} for {account}/{coin}"
                )
            position.deposited -= amount
            if collateral_only:
                position.collateral_only_deposited -= amount
            if position.deposited == 0:
                index.pop(coin, None)
        else:
            if amount > position.borrowed:
                raise InsufficientBalance(
                    f"Repay of {amount} exceeds borrowed {position.borrowed} for {account}/{coin}"
                )
            position.borrowed -= amount
            if position.borrowed == 0:
                index.pop(coin, None)

        logger.debug(
            "Position %s/%s/%s deposit=%s increase=%s amount=%d -> %s",
            account, coin, side.value, is_deposit, is_increase, amount, position,
        )
        return position

    # Valuation

    def _collateral_token(self, coin: str, side: Side) -> str:
        return coin if side is Side.ASSET else self.shadow_coin

    def _debt_token(self, coin: str, side: Side) -> str:
        return self.shadow_coin if side is Side.ASSET else coin

    def liquidation_threshold(self, coin: str, side: Side) -> int:
        return self.risk.liquidation_threshold(self._collateral_token(coin, side))

    def ltv(self, coin: str, side: Side) -> int:
        return self.risk.ltv(self._collateral_token(coin, side))

    def deposited_value(self, account: str, coin: str, side: Side) -> int:
        position = self.position(account, coin, side)
        return self.oracle.value_of(self._collateral_token(coin, side), position.deposited)

    def borrowed_value(self, account: str, coin: str, side: Side) -> int:
        position = self.position(account, coin, side)
        return self.oracle.value_of(self._debt_token(coin, side), position.borrowed)

    def collateral_amount_of(self, coin: str, side: Side, value: int) -> int:
        """Collateral token amount worth value."""
        return self.oracle.amount_of(self._collateral_token(coin, side), value)

    def debt_amount_of(self, coin: str, side: Side, value: int) -> int:
        """Debt token amount worth value."""
        return self.oracle.amount_of(self._debt_token(coin, side), value)

    # Solvency

    def utilization(self, account: str, coin: str, side: Side) -> int:
        deposited = self.deposited_value(account, coin, side)
        if deposited == 0:
            return 0
        return self.borrowed_value(account, coin, side) * PRECISION // deposited

    def is_safe(self, account: str, coin: str, side: Side) -> bool:
        position = self.position(account, coin, side)
        if position.borrowed == 0:
            return True
        if position.deposited == 0:
            return False
        return self.utilization(account, coin, side) < self.liquidation_threshold(coin, side)

    def assert_safe(self, account: str, coin: str, side: Side) -> None:
        if not self.is_safe(account, coin, side):
            raise Unsafe(
                f"Position {account}/{coin}/{side.value} utilization "
                f"{self.utilization(account, coin, side)} reaches threshold "
                f"{self.liquidation_threshold(coin, side)}"
            )

    def required_deposit(self, account: str, coin: str, side: Side) -> int:
        """Collateral value at which utilization equals the liquidation threshold."""
        borrowed = self.borrowed_value(account, coin, side)
        return borrowed * PRECISION // self.liquidation_threshold(coin, side)

    def extra_deposit(self, account: str, coin: str, side: Side) -> int:
        """Collateral value above the requirement; negative when short."""
        return self.deposited_value(account, coin, side) - self.required_deposit(account, coin, side)

    def movable_extra_deposit(self, account: str, coin: str, side: Side) -> int:
        """Extra collateral value that is not locked as collateral-only."""
        position = self.position(account, coin, side)
        movable = self.oracle.value_of(
            self._collateral_token(coin, side), position.deposited - position.collateral_only_deposited
        )
        return min(self.extra_deposit(account, coin, side), movable)

    def insufficient_deposit(self, account: str, coin: str, side: Side) -> int:
        """Collateral value missing to reach the requirement; negative when covered."""
        return -self.extra_deposit(account, coin, side)

    def borrowable_headroom(self, account: str, coin: str, side: Side) -> int:
        """Debt value that could still be added before hitting the liquidation threshold."""
        limit = self.deposited_value(account, coin, side) * self.liquidation_threshold(coin, side) // PRECISION
        return limit - self.borrowed_value(account, coin, side)

    def max_borrowable_value(self, account: str, coin: str, side: Side) -> int:
        """Debt value that could still be added while staying within LTV."""
        limit = self.deposited_value(account, coin, side) * self.ltv(coin, side) // PRECISION
        return max(0, limit - self.borrowed_value(account, coin, side))

    def snapshot(self):
        return copy.deepcopy((self.positions, self.active))

    def restore(self, snapshot) -> None:
        self.positions, self.active = copy.deepcopy(snapshot)
