"""
Prometheus Metrics for Ledger Ticker

Exposes operational metrics for monitoring and alerting.

Metrics:
- Asset pipeline counters (by outcome)
- Ledger page fetch and retry counters
- Trade ingestion and orderbook refresh counters
- Database write counters and latency histograms
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry

# Create a custom registry to avoid conflicts with default registry
REGISTRY = CollectorRegistry()


# =============================================================================
# Asset Pipeline Metrics
# =============================================================================

# Assets processed by the enrichment pipeline
ASSETS_PROCESSED_TOTAL = Counter(
    "ticker_assets_processed_total",
    "Assets processed by the enrichment pipeline",
    ["outcome"],  # outcome: valid, invalid, discarded
    registry=REGISTRY,
)

# Assets in the last published catalog
CATALOG_SIZE = Gauge(
    "ticker_catalog_size",
    "Number of assets in the last enriched catalog",
    registry=REGISTRY,
)

# Enrichment pipeline duration
PIPELINE_DURATION = Histogram(
    "ticker_pipeline_duration_seconds",
    "Duration of a full enrichment pipeline run",
    buckets=[1, 5, 15, 30, 60, 120, 300, 600, 1200],
    registry=REGISTRY,
)


# =============================================================================
# Ledger API Metrics
# =============================================================================

# Pages fetched from listing endpoints
LEDGER_PAGES_TOTAL = Counter(
    "ticker_ledger_pages_total",
    "Total pages fetched from ledger listing endpoints",
    ["endpoint"],
    registry=REGISTRY,
)

# Backoff retries
LEDGER_RETRIES_TOTAL = Counter(
    "ticker_ledger_retries_total",
    "Total backoff retries of ledger operations",
    ["operation"],
    registry=REGISTRY,
)

# Trades received (backfill or stream)
TRADES_INGESTED_TOTAL = Counter(
    "ticker_trades_ingested_total",
    "Total trades received from the ledger",
    ["source"],  # source: backfill, stream
    registry=REGISTRY,
)

# Orderbook refreshes
ORDERBOOKS_REFRESHED_TOTAL = Counter(
    "ticker_orderbooks_refreshed_total",
    "Total orderbook statistics refreshes",
    ["status"],  # status: success, error
    registry=REGISTRY,
)


# =============================================================================
# Database Metrics
# =============================================================================

# Database write success counter
DB_WRITES_TOTAL = Counter(
    "ticker_db_writes_total",
    "Total database write operations",
    ["table", "status"],  # status: success, error
    registry=REGISTRY,
)

# Database write latency
DB_WRITE_LATENCY = Histogram(
    "ticker_db_write_latency_seconds",
    "Database write latency in seconds",
    ["table"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
    registry=REGISTRY,
)


# =============================================================================
# Service Info Metrics
# =============================================================================

SERVICE_INFO = Gauge(
    "ticker_service_info",
    "Service information",
    ["version", "environment"],
    registry=REGISTRY,
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_pipeline_run(valid: int, invalid: int, discarded: int, duration_seconds: float) -> None:
    """Record metrics for a finished enrichment pipeline run."""
    ASSETS_PROCESSED_TOTAL.labels(outcome="valid").inc(valid)
    ASSETS_PROCESSED_TOTAL.labels(outcome="invalid").inc(invalid)
    ASSETS_PROCESSED_TOTAL.labels(outcome="discarded").inc(discarded)
    CATALOG_SIZE.set(valid + invalid)
    PIPELINE_DURATION.observe(duration_seconds)


def increment_pages(endpoint: str) -> None:
    """Increment ledger page counter."""
    LEDGER_PAGES_TOTAL.labels(endpoint=endpoint).inc()


def increment_retries(operation: str) -> None:
    """Increment backoff retry counter."""
    LEDGER_RETRIES_TOTAL.labels(operation=operation).inc()


def add_trades(source: str, count: int) -> None:
    """Add to trades ingested counter."""
    TRADES_INGESTED_TOTAL.labels(source=source).inc(count)


def record_orderbook_refresh(success: bool) -> None:
    """Record an orderbook refresh."""
    status = "success" if success else "error"
    ORDERBOOKS_REFRESHED_TOTAL.labels(status=status).inc()


def record_db_write(table: str, success: bool, latency_seconds: float) -> None:
    """Record database write metrics."""
    status = "success" if success else "error"
    DB_WRITES_TOTAL.labels(table=table, status=status).inc()
    if success:
        DB_WRITE_LATENCY.labels(table=table).observe(latency_seconds)


def set_service_info(version: str, environment: str) -> None:
    """Set service info gauge."""
    SERVICE_INFO.labels(version=version, environment=environment).set(1)
