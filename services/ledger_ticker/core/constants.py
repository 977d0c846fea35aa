"""
Ledger Ticker Constants

Central configuration for trust thresholds, pagination, retry and
reconnection settings.

These values define which assets are published in the catalog.
Changing the trust thresholds changes the public asset list.
"""

# =============================================================================
# Trust Filter
# =============================================================================

# Assets need at least some adoption to show up in the catalog
MIN_NUM_ACCOUNTS: int = 10

# Assets with at least this many holders are admitted even when their
# metadata document is missing or not served over HTTPS
TRUSTED_NUM_ACCOUNTS: int = 100

# Asset code issuers use to flag an asset for removal
REMOVED_ASSET_CODE: str = "REMOVE"

# Metadata documents must be served over this scheme
SECURE_SCHEME: str = "https"


# =============================================================================
# Native Asset
# =============================================================================

# Canonical identifiers synthesized for the network's native asset
NATIVE_ASSET_CODE: str = "XLM"
NATIVE_ASSET_ISSUER: str = "native"


# =============================================================================
# Metadata Document Fetch
# =============================================================================

METADATA_FETCH_TIMEOUT_SECONDS: float = 10.0

METADATA_USER_AGENT: str = "ledger-ticker/0.1"


# =============================================================================
# Pagination
# =============================================================================

# Records requested per page from listing endpoints
DEFAULT_PAGE_LIMIT: int = 200

# Maximum orderbook depth requested per side
ORDERBOOK_DEPTH_LIMIT: int = 200


# =============================================================================
# Backoff Retry
# =============================================================================

# Attempts per page fetch (first call included)
RETRY_MAX_ATTEMPTS: int = 5

# Delay before the first retry; doubled on every subsequent retry.
# No upper bound is applied to the delay.
RETRY_INITIAL_DELAY_SECONDS: float = 5.0


# =============================================================================
# Enrichment Pipeline
# =============================================================================

# Concurrent enrichment workers per asset refresh
DEFAULT_PARALLELISM: int = 50


# =============================================================================
# Trades
# =============================================================================

# How far back a fresh trade backfill reaches (7 days)
DEFAULT_TRADE_BACKFILL_HOURS: int = 168

# Window used for "relevant" markets in orderbook refresh
RELEVANT_MARKET_WINDOW_DAYS: int = 7

# Maximum numHoursAgo accepted by market queries (7 days)
MAX_MARKET_HOURS_AGO: int = 168


# =============================================================================
# Stream Reconnection
# =============================================================================

# Initial reconnect delay (ms)
RECONNECT_INITIAL_DELAY_MS: int = 1_000

# Maximum reconnect delay (ms)
RECONNECT_MAX_DELAY_MS: int = 60_000

# Reconnect backoff multiplier
RECONNECT_BACKOFF_MULTIPLIER: float = 2.0


# =============================================================================
# Snapshot Files
# =============================================================================

ASSETS_FILENAME: str = "assets.json"
MARKETS_FILENAME: str = "markets.json"
