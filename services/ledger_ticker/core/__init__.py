# Ledger Ticker Core Modules
"""
Core business logic for the asset catalog and market statistics.

Modules:
- types: Canonical type definitions (Pydantic models)
- constants: Trust thresholds, pagination and retry settings
- errors: Error taxonomy
- trust_filter: Asset admission rules
- orderbook_stats: Orderbook volume/spread reducer
- trade_normalizer: Canonical trade leg ordering
"""

from .types import (
    AssetFlags,
    AssetType,
    CurrencyDescriptor,
    FinalAssetRecord,
    IssuerDocumentation,
    IssuerMetadataDocument,
    MarketStats,
    MarketSummary,
    Network,
    OrderbookSnapshot,
    OrderbookStats,
    Price,
    PriceLevel,
    RawAssetRecord,
    RelevantMarket,
    SortOrder,
    TradeRecord,
)

from .errors import (
    InvalidPairNameError,
    LedgerError,
    LedgerRequestError,
    LedgerUnavailableError,
    MetadataError,
    PipelineInvariantError,
)

from .trust_filter import (
    is_secure_url,
    parse_amount,
    should_discard_asset,
)

from .orderbook_stats import (
    calc_spread,
    calculate_orderbook_stats,
)

from .trade_normalizer import (
    add_native_data,
    normalize_trade,
    reverse_trade,
)

__all__ = [
    # Types
    "AssetFlags",
    "AssetType",
    "CurrencyDescriptor",
    "FinalAssetRecord",
    "IssuerDocumentation",
    "IssuerMetadataDocument",
    "MarketStats",
    "MarketSummary",
    "Network",
    "OrderbookSnapshot",
    "OrderbookStats",
    "Price",
    "PriceLevel",
    "RawAssetRecord",
    "RelevantMarket",
    "SortOrder",
    "TradeRecord",
    # Errors
    "InvalidPairNameError",
    "LedgerError",
    "LedgerRequestError",
    "LedgerUnavailableError",
    "MetadataError",
    "PipelineInvariantError",
    # Trust Filter
    "is_secure_url",
    "parse_amount",
    "should_discard_asset",
    # Orderbook Stats
    "calc_spread",
    "calculate_orderbook_stats",
    # Trade Normalizer
    "add_native_data",
    "normalize_trade",
    "reverse_trade",
]
