# Ledger Ticker Snapshots
"""JSON snapshot files (assets.json, markets.json)."""

from .writer import write_json_atomic

__all__ = ["write_json_atomic"]
