"""
Orderbook Fetcher

Fetches orderbook snapshots for recently traded markets and reduces them to
OrderbookStats. Each market is fetched in both directions (base/counter and
counter/base), since the ledger keeps a separate book per direction.
"""

import logging

from ..core.constants import (
    ORDERBOOK_DEPTH_LIMIT,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_ATTEMPTS,
)
from ..core.orderbook_stats import calculate_orderbook_stats
from ..core.types import OrderbookStats, RelevantMarket
from ..ledger.client import AssetRef, LedgerClient
from .retry import retry

logger = logging.getLogger(__name__)


async def fetch_pair_stats(
    client: LedgerClient,
    base: AssetRef,
    counter: AssetRef,
    depth: int = ORDERBOOK_DEPTH_LIMIT,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS,
) -> OrderbookStats:
    """Fetch the book selling `base` for `counter` and compute its statistics."""
    snapshot = await retry(
        max_attempts,
        initial_delay,
        lambda: client.get_orderbook(selling=base, buying=counter, limit=depth),
        operation_name="fetch orderbook",
    )

    return calculate_orderbook_stats(
        snapshot,
        base_asset_type=base.asset_type,
        base_asset_code=base.code,
        base_asset_issuer=base.issuer,
        counter_asset_type=counter.asset_type,
        counter_asset_code=counter.code,
        counter_asset_issuer=counter.issuer,
    )


async def fetch_market_stats(
    client: LedgerClient,
    market: RelevantMarket,
    depth: int = ORDERBOOK_DEPTH_LIMIT,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS,
) -> list[OrderbookStats]:
    """Statistics for both directions of a market."""
    base = AssetRef(market.base_asset_type, market.base_asset_code, market.base_asset_issuer)
    counter = AssetRef(
        market.counter_asset_type, market.counter_asset_code, market.counter_asset_issuer
    )

    forward = await fetch_pair_stats(client, base, counter, depth, max_attempts, initial_delay)
    backward = await fetch_pair_stats(client, counter, base, depth, max_attempts, initial_delay)

    logger.debug(
        f"[orderbook] {base.code}/{counter.code}: "
        f"{forward.num_bids} bids, {forward.num_asks} asks, spread {forward.spread:.6f}"
    )
    return [forward, backward]
