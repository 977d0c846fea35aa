# Ledger Ticker Persistence
# PostgreSQL storage for the asset catalog, trades and orderbook stats

"""
Persistence module.

Components:
- DatabasePool: Connection pool management and schema initialization
- IssuerRepository / AssetRepository: Asset catalog upserts
- TradeRepository: Idempotent trade inserts
- OrderbookRepository: Orderbook statistics upserts
- MarketRepository: Relevant markets and 24h market aggregates
"""

from .pool import DatabasePool
from .queries import OptionalVar, build_upsert_query, generate_where_clause, parse_pair_name
from .repository import (
    AssetRepository,
    IssuerRepository,
    MarketRepository,
    OrderbookRepository,
    TradeRepository,
)

__all__ = [
    "DatabasePool",
    "OptionalVar",
    "build_upsert_query",
    "generate_where_clause",
    "parse_pair_name",
    "AssetRepository",
    "IssuerRepository",
    "MarketRepository",
    "OrderbookRepository",
    "TradeRepository",
]
