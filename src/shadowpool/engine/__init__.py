"""Ledger engine: curve, pools, stability reserve, positions and rebalancing."""
