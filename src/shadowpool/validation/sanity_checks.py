"""Sanity checks for market configuration and ledger state."""

from collections import defaultdict
from dataclasses import dataclass
from typing import List, Optional

from ..config.schema import Config
from ..engine.fixed_point import PRECISION, from_fixed
from ..engine.market import LendingMarket
from ..engine.pool import Side


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "input", "conservation", "bounds", "solvency"
    message: str
    details: Optional[str] = None


class SanityChecker:
    """Run sanity checks on configuration and market state."""

    def __init__(self, config: Config):
        """Initialize with configuration."""
        self.config = config

    def check_config_inputs(self) -> List[ValidationWarning]:
        """
        Check configuration inputs for implausible values.

        Returns:
            List of validation warnings
        """
        warnings = []
        risk = self.config.risk

        if risk.entry_fee > PRECISION // 20:
            warnings.append(ValidationWarning(
                severity="warning",
                category="bounds",
                message="Entry fee above 5% makes borrowing punitive",
                details=f"Current value: {from_fixed(risk.entry_fee)*100:.2f}%"
            ))

        if risk.share_fee > PRECISION // 2:
            warnings.append(ValidationWarning(
                severity="warning",
                category="bounds",
                message="Protocol keeps more than half of accrued interest",
                details=f"Current value: {from_fixed(risk.share_fee)*100:.1f}%"
            ))

        if risk.shadow_ltv > risk.shadow_liquidation_threshold:
            warnings.append(ValidationWarning(
                severity="error",
                category="input",
                message="Shadow LTV exceeds shadow liquidation threshold",
                details=(
                    f"LTV: {from_fixed(risk.shadow_ltv):.2f}, "
                    f"LT: {from_fixed(risk.shadow_liquidation_threshold):.2f}"
                )
            ))

        for coin, coin_config in self.config.coins.items():
            if coin_config.liquidation_threshold == PRECISION:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="bounds",
                    message=f"{coin} liquidation threshold is 100%",
                    details="Positions can only be liquidated once fully underwater"
                ))

        if not self.config.coins:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="No coins configured"
            ))

        return warnings

    def check_market(self, market: LendingMarket) -> List[ValidationWarning]:
        """
        Check ledger invariants of a live market.

        Args:
            market: Market to inspect

        Returns:
            List of validation warnings
        """
        warnings = []

        for side, pool in market.pools.items():
            locked = defaultdict(int)
            for coin, reserve in pool.reserves.items():
                label = f"{side.value}/{coin}"
                locked[pool.vault_key(coin)] += reserve.total_collateral_only_deposited

                for name in ("total_deposited", "total_collateral_only_deposited", "total_borrowed",
                             "protocol_fee_accrued", "principal_borrowed", "repaid_interest"):
                    value = getattr(reserve, name)
                    if value < 0:
                        warnings.append(ValidationWarning(
                            severity="error",
                            category="bounds",
                            message=f"{name} went negative for {label}",
                            details=f"Value: {value:,}"
                        ))

                if reserve.total_collateral_only_deposited > reserve.total_deposited:
                    warnings.append(ValidationWarning(
                        severity="error",
                        category="conservation",
                        message=f"Collateral-only deposits exceed total deposits for {label}",
                        details=(
                            f"Collateral-only: {reserve.total_collateral_only_deposited:,}, "
                            f"Deposited: {reserve.total_deposited:,}"
                        )
                    ))

                if reserve.principal_borrowed > reserve.total_borrowed:
                    warnings.append(ValidationWarning(
                        severity="error",
                        category="conservation",
                        message=f"Outstanding principal exceeds total borrowed for {label}",
                        details=(
                            f"Principal: {reserve.principal_borrowed:,}, "
                            f"Borrowed: {reserve.total_borrowed:,}"
                        )
                    ))

            for key, amount in locked.items():
                if pool.vaults.get(key, 0) < amount:
                    warnings.append(ValidationWarning(
                        severity="error",
                        category="conservation",
                        message=f"{side.value} vault {key} holds less than its collateral-only deposits",
                        details=f"Vault: {pool.vaults.get(key, 0):,}, Collateral-only: {amount:,}"
                    ))

        warnings.extend(self._check_positions(market))
        warnings.extend(self._check_stability(market))
        return warnings

    def _check_positions(self, market: LendingMarket) -> List[ValidationWarning]:
        warnings = []
        deposited = defaultdict(int)
        borrowed = defaultdict(int)
        for (account, coin, side), position in market.tracker.positions.items():
            deposited[(coin, side)] += position.deposited
            # Debt of a position is owed to the opposite side's pool
            borrowed[(coin, side.opposite)] += position.borrowed
            if not market.tracker.is_safe(account, coin, side):
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="solvency",
                    message=f"Position {account}/{coin}/{side.value} is at or above its liquidation threshold",
                    details=f"Utilization: {from_fixed(market.tracker.utilization(account, coin, side)):.4f}"
                ))

        for (coin, side), total in deposited.items():
            reserve = market.pools[side].reserves.get(coin)
            if reserve is not None and total > reserve.total_deposited:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="conservation",
                    message=f"Positions hold more deposits than the {side.value}/{coin} pool",
                    details=f"Positions: {total:,}, Pool: {reserve.total_deposited:,}"
                ))
        for (coin, side), total in borrowed.items():
            reserve = market.pools[side].reserves.get(coin)
            if reserve is not None and total > reserve.total_borrowed:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="conservation",
                    message=f"Positions owe more than the {side.value}/{coin} pool lent",
                    details=f"Positions: {total:,}, Pool: {reserve.total_borrowed:,}"
                ))
        return warnings

    def _check_stability(self, market: LendingMarket) -> List[ValidationWarning]:
        warnings = []
        stability = market.stability
        if stability.free_liquidity < 0:
            warnings.append(ValidationWarning(
                severity="error",
                category="bounds",
                message="Stability free liquidity went negative",
                details=f"Value: {stability.free_liquidity:,}"
            ))
        for coin, balance in stability.balances.items():
            if balance.uncollected_fee > balance.total_borrowed:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="conservation",
                    message=f"Uncollected stability fee exceeds debt for {coin}",
                    details=f"Fee: {balance.uncollected_fee:,}, Debt: {balance.total_borrowed:,}"
                ))
            shadow_reserve = market.pools[Side.SHADOW].reserves.get(coin)
            if shadow_reserve is not None and balance.total_borrowed > shadow_reserve.total_borrowed:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="conservation",
                    message=f"Stability debt for {coin} exceeds the shadow pool's borrowed total",
                    details=(
                        f"Stability: {balance.total_borrowed:,}, "
                        f"Shadow pool: {shadow_reserve.total_borrowed:,}"
                    )
                ))
        return warnings


def validate_market(market: LendingMarket) -> List[ValidationWarning]:
    """
    Validate configuration and ledger state of a market.

    Args:
        market: Market to validate

    Returns:
        List of all validation warnings
    """
    checker = SanityChecker(market.config)
    warnings = []
    warnings.extend(checker.check_config_inputs())
    warnings.extend(checker.check_market(market))
    return warnings
