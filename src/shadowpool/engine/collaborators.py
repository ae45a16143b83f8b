"""External collaborators consumed by the ledger, with in-memory implementations."""

import time
from typing import Dict, Optional, Protocol

from ..config.schema import Config
from .errors import InvalidArgument, NotAvailable
from .fixed_point import MICROS_PER_SECOND, PRECISION, to_fixed


class PriceOracle(Protocol):
    """Monotonic, coin-specific price conversion."""

    def value_of(self, coin: str, amount: int) -> int: ...

    def amount_of(self, coin: str, value: int) -> int: ...


class FeeSink(Protocol):
    """Destination for protocol fees."""

    def collect(self, coin: str, amount: int) -> None: ...


class FixedPriceOracle:
    """Oracle with manually set prices (fixed point). Unlisted coins price at 1:1."""

    def __init__(self, prices: Optional[Dict[str, object]] = None, default_price: Optional[int] = PRECISION):
        self.prices: Dict[str, int] = {}
        self.default_price = default_price
        for coin, price in (prices or {}).items():
            self.set_price(coin, price)

    def set_price(self, coin: str, price) -> None:
        """Set a price; floats are fractions, ints are fixed point."""
        price = to_fixed(price)
        if price <= 0:
            raise InvalidArgument(f"Price for {coin} must be positive")
        self.prices[coin] = price

    def price_of(self, coin: str) -> int:
        price = self.prices.get(coin, self.default_price)
        if price is None:
            raise NotAvailable(f"No price for {coin}")
        return price

    def value_of(self, coin: str, amount: int) -> int:
        return amount * self.price_of(coin) // PRECISION

    def amount_of(self, coin: str, value: int) -> int:
        return value * PRECISION // self.price_of(coin)


class RiskParams:
    """Risk parameters read from config. The shadow symbol resolves to shadow limits."""

    def __init__(self, config: Config):
        self.config = config

    @property
    def shadow_coin(self) -> str:
        return self.config.shadow_coin

    def _coin(self, coin: str):
        coin_config = self.config.coins.get(coin)
        if coin_config is None:
            raise NotAvailable(f"No risk parameters for {coin}")
        return coin_config

    def ltv(self, coin: str) -> int:
        if coin == self.shadow_coin:
            return self.config.risk.shadow_ltv
        return self._coin(coin).ltv

    def liquidation_threshold(self, coin: str) -> int:
        if coin == self.shadow_coin:
            return self.config.risk.shadow_liquidation_threshold
        return self._coin(coin).liquidation_threshold

    def entry_fee(self) -> int:
        return self.config.risk.entry_fee

    def share_fee(self) -> int:
        return self.config.risk.share_fee

    def liquidation_fee(self) -> int:
        return self.config.risk.liquidation_fee

    def stability_fee(self) -> int:
        return self.config.stability.stability_fee


class Treasury:
    """Fee sink that just keeps balances per coin."""

    def __init__(self):
        self.balances: Dict[str, int] = {}

    def collect(self, coin: str, amount: int) -> None:
        if amount < 0:
            raise InvalidArgument("Fee amount must be non-negative")
        if amount == 0:
            return
        self.balances[coin] = self.balances.get(coin, 0) + amount

    def balance_of(self, coin: str) -> int:
        return self.balances.get(coin, 0)

    def snapshot(self):
        return dict(self.balances)

    def restore(self, snapshot) -> None:
        self.balances = dict(snapshot)


class ManualClock:
    """Deterministic clock in microseconds, advanced explicitly."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float = 0, micros: int = 0) -> int:
        step = int(seconds * MICROS_PER_SECOND) + micros
        if step < 0:
            raise InvalidArgument("Clock cannot move backwards")
        self.now += step
        return self.now


def system_clock() -> int:
    """Wall clock in microseconds."""
    return time.time_ns() // 1000
