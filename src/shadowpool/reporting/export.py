"""Export functionality for CSV and JSON."""

import json

import pandas as pd

from ..engine.market import LendingMarket


def _to_builtin(value):
    """numpy scalars from DataFrame records to plain Python values."""
    if hasattr(value, "item"):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def reserves_frame(market: LendingMarket) -> pd.DataFrame:
    """One row per (coin, side) pool reserve."""
    data = []
    for side, pool in market.pools.items():
        for coin, reserve in pool.reserves.items():
            curve = pool.curves[coin]
            data.append({
                'coin': coin,
                'side': side.value,
                'status': pool.status[coin].value,
                'total_deposited': reserve.total_deposited,
                'total_collateral_only_deposited': reserve.total_collateral_only_deposited,
                'total_borrowed': reserve.total_borrowed,
                'liquidity': reserve.liquidity,
                'protocol_fee_accrued': reserve.protocol_fee_accrued,
                'principal_borrowed': reserve.principal_borrowed,
                'repaid_interest': reserve.repaid_interest,
                'last_updated': reserve.last_updated,
                'ri': curve.ri,
                'tcrit': curve.tcrit,
            })
    return pd.DataFrame(data)


def positions_frame(market: LendingMarket) -> pd.DataFrame:
    """One row per (account, coin, side) position with its utilization."""
    tracker = market.tracker
    data = []
    for (account, coin, side), position in tracker.positions.items():
        data.append({
            'account': account,
            'coin': coin,
            'side': side.value,
            'deposited': position.deposited,
            'collateral_only_deposited': position.collateral_only_deposited,
            'borrowed': position.borrowed,
            'utilization': tracker.utilization(account, coin, side),
            'is_safe': tracker.is_safe(account, coin, side),
        })
    return pd.DataFrame(data)


def export_csv(market: LendingMarket, filepath: str):
    """Export pool reserves to CSV."""
    df = reserves_frame(market)
    df.to_csv(filepath, index=False)


def export_json(market: LendingMarket, filepath: str):
    """Export the full ledger snapshot to JSON."""
    stability = market.stability
    export_data = {
        'config': market.config.to_dict(),
        'config_hash': market.config.compute_hash(),
        'reserves': reserves_frame(market).to_dict(orient='records'),
        'positions': positions_frame(market).to_dict(orient='records'),
        'stability': {
            'free_liquidity': stability.free_liquidity,
            'total_deposited': stability.total_deposited,
            'collected_fee': stability.collected_fee,
            'balances': {
                coin: {
                    'total_borrowed': balance.total_borrowed,
                    'uncollected_fee': balance.uncollected_fee,
                }
                for coin, balance in stability.balances.items()
            },
        },
        'treasury': dict(market.treasury.balances),
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2, default=_to_builtin)
