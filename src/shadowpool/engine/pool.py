"""Pool Ledger - Aggregate deposited/borrowed totals per coin and side.

Interest accrues lazily: every mutation first runs `accrue`, which compounds
`total_borrowed` by the curve's rcomp since the last stamped timestamp and
credits depositors with everything but the protocol's share. Accounting is
share-free; positions keep their nominal amounts.

Physical holdings live in vaults. The asset side has one vault per coin, the
shadow side shares a single vault of the shadow asset across all coins, so a
shadow borrow for one coin can be funded by another coin's shadow deposits.
Collateral-only deposits sit in the vault but are never lent out.
"""

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from ..config.schema import InterestRateConfig
from . import interest_rate
from .errors import (
    AlreadyExists,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidArgument,
    NotAvailable,
    NotInitialized,
    Overflow,
)
from .fixed_point import AMOUNT_MAX, PRECISION

logger = logging.getLogger(__name__)


class Side(Enum):
    """Which token a ledger entry is denominated in."""
    ASSET = "asset"
    SHADOW = "shadow"

    @property
    def opposite(self) -> "Side":
        return Side.SHADOW if self is Side.ASSET else Side.ASSET


class PoolStatus(Enum):
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass
class PoolReserve:
    """Aggregate totals for one coin on one side."""
    total_deposited: int = 0
    total_collateral_only_deposited: int = 0
    total_borrowed: int = 0
    last_updated: int = 0  # Microseconds
    protocol_fee_accrued: int = 0
    principal_borrowed: int = 0  # Debt created by borrows, excluding accrued interest
    repaid_interest: int = 0  # Interest repaid into the vault and not yet harvested

    @property
    def liquidity(self) -> int:
        """Deposits that may be lent out."""
        return self.total_deposited - self.total_collateral_only_deposited


@dataclass(frozen=True)
class BorrowReceipt:
    """Breakdown of a borrow. `debt` is what the borrower owes."""
    amount: int
    entry_fee: int
    stability_fee: int = 0
    from_stability: int = 0

    @property
    def debt(self) -> int:
        return self.amount + self.entry_fee + self.stability_fee


class Pool:
    """Ledger for every coin on one side."""

    def __init__(self, side: Side, risk, fee_sink, stability=None, shadow_coin: str = "SHADOW"):
        """
        Initialize a pool side.

        Args:
            side: ASSET or SHADOW
            risk: Risk parameter source (entry_fee, share_fee)
            fee_sink: Receives entry fees, liquidation fees and harvested protocol fees
            stability: Stability reserve backing shadow borrows (shadow side only)
            shadow_coin: Shadow asset symbol
        """
        self.side = side
        self.risk = risk
        self.fee_sink = fee_sink
        self.stability = stability if side is Side.SHADOW else None
        self.shadow_coin = shadow_coin

        self.reserves: Dict[str, PoolReserve] = {}
        self.status: Dict[str, PoolStatus] = {}
        self.curves: Dict[str, InterestRateConfig] = {}
        self.vaults: Dict[str, int] = {}

    # Lifecycle

    def init(self, coin: str, curve: InterestRateConfig) -> None:
        if coin in self.reserves:
            raise AlreadyExists(f"{self.side.value} pool for {coin} already initialized")
        self.reserves[coin] = PoolReserve()
        self.status[coin] = PoolStatus.ACTIVE
        self.curves[coin] = curve
        self.vaults.setdefault(self.vault_key(coin), 0)
        logger.info("Initialized %s pool for %s", self.side.value, coin)

    def pause(self, coin: str) -> None:
        self._require_initialized(coin)
        self.status[coin] = PoolStatus.PAUSED
        logger.info("Paused %s pool for %s", self.side.value, coin)

    def unpause(self, coin: str) -> None:
        self._require_initialized(coin)
        self.status[coin] = PoolStatus.ACTIVE
        logger.info("Unpaused %s pool for %s", self.side.value, coin)

    def is_initialized(self, coin: str) -> bool:
        return coin in self.reserves

    def is_active(self, coin: str) -> bool:
        return self.status.get(coin) is PoolStatus.ACTIVE

    def _require_initialized(self, coin: str) -> PoolReserve:
        reserve = self.reserves.get(coin)
        if reserve is None:
            raise NotInitialized(f"{self.side.value} pool for {coin} is not initialized")
        return reserve

    def _require_active(self, coin: str) -> PoolReserve:
        if not self.is_active(coin):
            raise NotAvailable(f"{self.side.value} pool for {coin} is not available")
        return self.reserves[coin]

    # Views

    def reserve(self, coin: str) -> PoolReserve:
        return self._require_initialized(coin)

    def vault_key(self, coin: str) -> str:
        return self.shadow_coin if self.side is Side.SHADOW else coin

    def token_of(self, coin: str) -> str:
        """Token physically moved by this side for a coin."""
        return self.vault_key(coin)

    def liquidity(self, coin: str) -> int:
        return self._require_initialized(coin).liquidity

    def vault_balance(self, coin: str) -> int:
        return self.vaults.get(self.vault_key(coin), 0)

    def free_liquidity(self, coin: str) -> int:
        """Physical balance that can be lent: vault minus collateral-only holdings sharing it."""
        key = self.vault_key(coin)
        locked = sum(
            reserve.total_collateral_only_deposited
            for other, reserve in self.reserves.items()
            if self.vault_key(other) == key
        )
        return max(0, self.vaults.get(key, 0) - locked)

    # Accrual

    def accrue(self, coin: str, now: int) -> int:
        """
        Accrue interest for a coin up to now.

        Returns:
            Interest added to total_borrowed
        """
        reserve = self._require_initialized(coin)
        if reserve.last_updated == 0:
            reserve.last_updated = now
            return 0
        if reserve.last_updated == now:
            return 0

        curve = self.curves[coin]
        result = interest_rate.accrue(
            curve, reserve.total_deposited, reserve.total_borrowed, reserve.last_updated, now
        )
        curve.ri = result.ri
        curve.tcrit = result.tcrit

        accrued = reserve.total_borrowed * result.rcomp // PRECISION
        protocol_share = accrued * self.risk.share_fee() // PRECISION
        reserve.total_borrowed += accrued
        reserve.protocol_fee_accrued += protocol_share
        reserve.total_deposited += accrued - protocol_share
        reserve.last_updated = now

        if accrued:
            logger.debug(
                "Accrued %s/%s interest=%d protocol_share=%d rcomp=%d",
                self.side.value, coin, accrued, protocol_share, result.rcomp,
            )
        return accrued

    # Mutations

    def deposit(self, coin: str, amount: int, now: int, collateral_only: bool = False) -> None:
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        reserve = self._require_active(coin)
        self.accrue(coin, now)

        if reserve.total_deposited + amount > AMOUNT_MAX:
            raise Overflow(f"Deposit of {amount} exceeds ledger width for {coin}")
        reserve.total_deposited += amount
        if collateral_only:
            reserve.total_collateral_only_deposited += amount
        key = self.vault_key(coin)
        self.vaults[key] = self.vaults.get(key, 0) + amount
        logger.debug(
            "Deposit %s/%s amount=%d collateral_only=%s", self.side.value, coin, amount, collateral_only
        )

    def withdraw(
        self,
        coin: str,
        amount: int,
        now: int,
        collateral_only: bool = False,
        liquidation_fee: int = 0,
    ) -> int:
        """
        Withdraw deposits.

        Args:
            coin: Coin identifier
            amount: Amount removed from the deposited totals
            now: Current timestamp
            collateral_only: Withdraw from the collateral-only bucket
            liquidation_fee: Part of amount sent to the fee sink first

        Returns:
            Amount paid out to the caller (amount - liquidation_fee)
        """
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        if liquidation_fee < 0 or liquidation_fee > amount:
            raise InvalidArgument(f"Liquidation fee {liquidation_fee} outside [0, {amount}]")
        reserve = self._require_active(coin)
        self.accrue(coin, now)

        if collateral_only:
            held = reserve.total_collateral_only_deposited
            available = min(self.vault_balance(coin), held)
        else:
            held = reserve.liquidity
            available = self.free_liquidity(coin)
        if amount > held:
            raise InsufficientBalance(f"Withdraw of {amount} exceeds deposited {held} for {coin}")
        if amount > available:
            raise InsufficientLiquidity(f"Withdraw of {amount} exceeds available {available} for {coin}")

        key = self.vault_key(coin)
        self.vaults[key] -= amount
        if liquidation_fee:
            self.fee_sink.collect(self.token_of(coin), liquidation_fee)
        reserve.total_deposited -= amount
        if collateral_only:
            reserve.total_collateral_only_deposited -= amount
        logger.debug(
            "Withdraw %s/%s amount=%d collateral_only=%s liquidation_fee=%d",
            self.side.value, coin, amount, collateral_only, liquidation_fee,
        )
        return amount - liquidation_fee

    def borrow(self, coin: str, amount: int, now: int) -> BorrowReceipt:
        """
        Borrow from the pool; the shadow side falls back on the stability reserve.

        Raises:
            InsufficientLiquidity: If vault plus backstop cannot fund amount + entry fee
        """
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        reserve = self._require_active(coin)
        self.accrue(coin, now)

        entry_fee = amount * self.risk.entry_fee() // PRECISION
        needed = amount + entry_fee
        available = self.free_liquidity(coin)
        shortfall = max(0, needed - available)

        if shortfall and self.stability is None:
            raise InsufficientLiquidity(
                f"Borrow of {needed} exceeds {self.side.value} liquidity {available} for {coin}"
            )
        if shortfall and shortfall > self.stability.free_liquidity:
            raise InsufficientLiquidity(
                f"Borrow of {needed} exceeds liquidity {available} plus stability reserve "
                f"{self.stability.free_liquidity} for {coin}"
            )

        receipt = BorrowReceipt(amount=amount, entry_fee=entry_fee)
        if reserve.total_borrowed + receipt.debt > AMOUNT_MAX:
            raise Overflow(f"Borrow of {amount} exceeds ledger width for {coin}")

        stability_fee = 0
        if shortfall:
            stability_fee = self.stability.borrow(coin, shortfall)
            receipt = BorrowReceipt(
                amount=amount, entry_fee=entry_fee, stability_fee=stability_fee, from_stability=shortfall
            )

        key = self.vault_key(coin)
        self.vaults[key] = self.vaults.get(key, 0) + shortfall - needed
        self.fee_sink.collect(self.token_of(coin), entry_fee)
        reserve.total_borrowed += receipt.debt
        reserve.principal_borrowed += receipt.debt
        logger.debug(
            "Borrow %s/%s amount=%d entry_fee=%d from_stability=%d stability_fee=%d",
            self.side.value, coin, amount, entry_fee, shortfall, stability_fee,
        )
        return receipt

    def repay(self, coin: str, amount: int, now: int) -> int:
        """
        Repay borrowed funds. Stability reserve debt for the coin is settled first.

        Repayments cover principal before accrued interest; only the interest
        part becomes harvestable by the protocol.

        Returns:
            Part of amount routed to the stability reserve
        """
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        reserve = self._require_active(coin)
        self.accrue(coin, now)

        if amount > reserve.total_borrowed:
            raise InsufficientBalance(
                f"Repay of {amount} exceeds borrowed {reserve.total_borrowed} for {coin}"
            )

        to_stability = 0
        if self.stability is not None:
            to_stability = min(amount, self.stability.total_borrowed(coin))
            if to_stability:
                self.stability.repay(coin, to_stability)

        key = self.vault_key(coin)
        principal_paid = min(amount, reserve.principal_borrowed)
        self.vaults[key] = self.vaults.get(key, 0) + amount - to_stability
        reserve.total_borrowed -= amount
        reserve.principal_borrowed -= principal_paid
        reserve.repaid_interest += amount - principal_paid
        logger.debug(
            "Repay %s/%s amount=%d to_stability=%d interest=%d",
            self.side.value, coin, amount, to_stability, amount - principal_paid,
        )
        return to_stability

    def transfer_deposit(self, coin_from: str, coin_to: str, amount: int, now: int) -> None:
        """Move deposited totals between two coins sharing a vault; no funds move."""
        if amount <= 0:
            raise InvalidArgument("Amount must be greater than zero")
        if self.vault_key(coin_from) != self.vault_key(coin_to):
            raise InvalidArgument(f"{coin_from} and {coin_to} do not share a vault")
        source = self._require_active(coin_from)
        target = self._require_active(coin_to)
        self.accrue(coin_from, now)
        self.accrue(coin_to, now)

        if amount > source.liquidity:
            raise InsufficientBalance(
                f"Transfer of {amount} exceeds deposited {source.liquidity} for {coin_from}"
            )
        source.total_deposited -= amount
        target.total_deposited += amount
        logger.debug(
            "Transferred %d %s deposits from %s to %s", amount, self.side.value, coin_from, coin_to
        )

    def harvest_protocol_fees(self, coin: str) -> int:
        """
        Move accrued protocol fees to the fee sink.

        Only interest already repaid into the vault can be harvested, so
        depositor principal is never paid out as fees.
        """
        reserve = self._require_initialized(coin)
        amount = min(reserve.protocol_fee_accrued, reserve.repaid_interest, self.free_liquidity(coin))
        if amount <= 0:
            return 0
        reserve.protocol_fee_accrued -= amount
        reserve.repaid_interest -= amount
        self.vaults[self.vault_key(coin)] -= amount
        self.fee_sink.collect(self.token_of(coin), amount)
        logger.info("Harvested %d protocol fees from %s/%s", amount, self.side.value, coin)
        return amount

    def snapshot(self):
        return copy.deepcopy((self.reserves, self.status, self.curves, self.vaults))

    def restore(self, snapshot) -> None:
        self.reserves, self.status, self.curves, self.vaults = copy.deepcopy(snapshot)


def make_pools(risk, fee_sink, stability, shadow_coin: str) -> Dict[Side, Pool]:
    """Build both pool sides sharing one fee sink and stability reserve."""
    return {
        side: Pool(side, risk, fee_sink, stability=stability, shadow_coin=shadow_coin)
        for side in Side
    }
