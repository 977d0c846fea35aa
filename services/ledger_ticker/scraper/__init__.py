# Ledger Ticker Scraper
# Reads assets, trades and orderbooks from the ledger
"""
Ledger scrapers.

- retry: Exponential backoff retrier
- pagination: Cursor pagination over listing endpoints
- metadata: Issuer metadata validation and enrichment
- pipeline: Parallel asset enrichment
- assets: Asset catalog scrape (fetch + pipeline)
- trades: Trade backfill and live stream
- orderbook: Orderbook statistics per market
"""

from .retry import retry
from .pagination import fetch_all_pages
from .metadata import (
    decode_metadata_document,
    domains_match,
    enrich_asset,
    fetch_metadata_document,
    is_domain_verified,
    make_final_asset,
)
from .pipeline import DISCARDED, parallel_process_assets
from .assets import fetch_all_assets, scrape_assets
from .trades import backfill_trades, stream_trades
from .orderbook import fetch_market_stats, fetch_pair_stats

__all__ = [
    "retry",
    "fetch_all_pages",
    "decode_metadata_document",
    "domains_match",
    "enrich_asset",
    "fetch_metadata_document",
    "is_domain_verified",
    "make_final_asset",
    "DISCARDED",
    "parallel_process_assets",
    "fetch_all_assets",
    "scrape_assets",
    "backfill_trades",
    "stream_trades",
    "fetch_market_stats",
    "fetch_pair_stats",
]
