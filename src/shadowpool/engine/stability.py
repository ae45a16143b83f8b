"""Stability Reserve - Shared shadow liquidity backing every coin's shadow ledger.

When a coin's shadow pool cannot cover a borrow from its own vault, the
shortfall is lent from here with a stability fee on top. Repayments settle the
uncollected fee before any principal, so the reserve is paid first.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Dict, Tuple

from .errors import InsufficientBalance, InsufficientLiquidity, InvalidArgument
from .fixed_point import PRECISION

logger = logging.getLogger(__name__)


@dataclass
class StabilityBalance:
    """Reserve debt owed by one coin's shadow ledger."""
    total_borrowed: int = 0  # Principal plus fee still owed
    uncollected_fee: int = 0  # Fee part of total_borrowed not yet repaid


class StabilityReserve:
    """Single shared pool of the shadow asset."""

    def __init__(self, stability_fee: int, fee_sink=None, shadow_coin: str = "SHADOW"):
        """
        Initialize the reserve.

        Args:
            stability_fee: Fee rate on reserve-backed borrows (fixed point)
            fee_sink: Where collected fees are sent by collect_fees
            shadow_coin: Symbol of the shadow asset, used when paying the sink
        """
        self.stability_fee = stability_fee
        self.fee_sink = fee_sink
        self.shadow_coin = shadow_coin

        self.free_liquidity = 0
        self.total_deposited = 0
        self.collected_fee = 0
        self.balances: Dict[str, StabilityBalance] = {}
        self.deposits: Dict[str, int] = {}

    def stability_fee_of(self, amount: int) -> int:
        return amount * self.stability_fee // PRECISION

    def balance(self, coin: str) -> StabilityBalance:
        return self.balances.get(coin, StabilityBalance())

    def total_borrowed(self, coin: str) -> int:
        return self.balance(coin).total_borrowed

    def uncollected_fee(self, coin: str) -> int:
        return self.balance(coin).uncollected_fee

    def deposit_of(self, account: str) -> int:
        return self.deposits.get(account, 0)

    def deposit(self, account: str, amount: int) -> None:
        """Add shadow liquidity on behalf of a provider."""
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        self.deposits[account] = self.deposits.get(account, 0) + amount
        self.total_deposited += amount
        self.free_liquidity += amount
        logger.debug("Stability deposit account=%s amount=%d", account, amount)

    def withdraw(self, account: str, amount: int) -> None:
        """Return provider liquidity. Lent-out liquidity cannot be withdrawn."""
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        if amount > self.deposits.get(account, 0):
            raise InsufficientBalance(
                f"Withdraw of {amount} exceeds stability deposit {self.deposits.get(account, 0)}"
            )
        if amount > self.free_liquidity:
            raise InsufficientLiquidity(
                f"Withdraw of {amount} exceeds free stability liquidity {self.free_liquidity}"
            )
        self.deposits[account] -= amount
        self.total_deposited -= amount
        self.free_liquidity -= amount
        logger.debug("Stability withdraw account=%s amount=%d", account, amount)

    def borrow(self, coin: str, amount: int) -> int:
        """
        Lend shadow liquidity to a coin's shadow ledger.

        Returns:
            The stability fee added to the coin's reserve debt

        Raises:
            InsufficientLiquidity: If amount exceeds free liquidity
        """
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        if amount > self.free_liquidity:
            raise InsufficientLiquidity(
                f"Stability borrow of {amount} exceeds free liquidity {self.free_liquidity}"
            )
        fee = self.stability_fee_of(amount)
        balance = self.balances.setdefault(coin, StabilityBalance())
        balance.total_borrowed += amount + fee
        balance.uncollected_fee += fee
        self.free_liquidity -= amount
        logger.debug("Stability borrow coin=%s amount=%d fee=%d", coin, amount, fee)
        return fee

    def repay(self, coin: str, amount: int) -> Tuple[int, int]:
        """
        Repay reserve debt for a coin, fee first then principal.

        Returns:
            (fee_paid, principal_paid)
        """
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        balance = self.balance(coin)
        if amount > balance.total_borrowed:
            raise InsufficientBalance(
                f"Repay of {amount} exceeds stability debt {balance.total_borrowed} for {coin}"
            )
        balance = self.balances[coin]
        fee_paid = min(amount, balance.uncollected_fee)
        principal_paid = amount - fee_paid

        balance.uncollected_fee -= fee_paid
        self.collected_fee += fee_paid
        balance.total_borrowed -= amount
        self.free_liquidity += principal_paid
        logger.debug(
            "Stability repay coin=%s fee_paid=%d principal_paid=%d", coin, fee_paid, principal_paid
        )
        return fee_paid, principal_paid

    def collect_fees(self) -> int:
        """Send collected fees to the fee sink."""
        amount = self.collected_fee
        if amount > 0 and self.fee_sink is not None:
            self.fee_sink.collect(self.shadow_coin, amount)
            self.collected_fee = 0
            return amount
        return 0

    def snapshot(self):
        return copy.deepcopy(
            (self.free_liquidity, self.total_deposited, self.collected_fee, self.balances, self.deposits)
        )

    def restore(self, snapshot) -> None:
        (
            self.free_liquidity,
            self.total_deposited,
            self.collected_fee,
            self.balances,
            self.deposits,
        ) = copy.deepcopy(snapshot)
