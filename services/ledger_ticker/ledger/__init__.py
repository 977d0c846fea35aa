# Ledger Ticker Ledger API Client
# Read-only access to the ledger's REST API
"""
Ledger API client.

The client:
- Lists assets and trades page by page (cursor pagination)
- Fetches orderbook snapshots per asset pair
- Subscribes to the live trade stream (server-sent events)
- Maps transport/HTTP failures to retryable and non-retryable errors
"""

from .client import (
    AssetRef,
    LedgerClient,
    Page,
    cursor_from_href,
    iter_sse_data,
    parse_asset_record,
    parse_orderbook,
    parse_trade_record,
)

__all__ = [
    "AssetRef",
    "LedgerClient",
    "Page",
    "cursor_from_href",
    "iter_sse_data",
    "parse_asset_record",
    "parse_orderbook",
    "parse_trade_record",
]
