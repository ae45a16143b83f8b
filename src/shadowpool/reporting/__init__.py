"""Ledger reporting."""

from .export import export_csv, export_json, positions_frame, reserves_frame

__all__ = ["export_csv", "export_json", "positions_frame", "reserves_frame"]
