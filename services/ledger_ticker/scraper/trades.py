"""
Trade Backfill/Stream Reader

Reads trades from the ledger in canonical leg order.

Backfill:
    Walks newest-first pages until the first record older than `since`;
    that page is kept up to the boundary and earlier pages whole.

Stream:
    Subscribes to the live feed from a cursor ("now" by default) and calls
    the handler once per trade. Dropped connections reconnect with
    exponential backoff from the last seen paging token, so a trade can be
    delivered more than once; storage dedupes on the trade id.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..core.constants import (
    DEFAULT_PAGE_LIMIT,
    RECONNECT_BACKOFF_MULTIPLIER,
    RECONNECT_INITIAL_DELAY_MS,
    RECONNECT_MAX_DELAY_MS,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_ATTEMPTS,
)
from ..core.errors import LedgerUnavailableError
from ..core.metrics import add_trades
from ..core.trade_normalizer import normalize_trade
from ..core.types import SortOrder, TradeRecord
from ..ledger.client import LedgerClient
from .pagination import fetch_all_pages

logger = logging.getLogger(__name__)

TradeHandler = Callable[[TradeRecord], Awaitable[None]]


def since_boundary(since: datetime):
    """Build a pagination hook keeping records at or after `since`."""

    def until(records: list[TradeRecord]) -> tuple[list[TradeRecord], bool]:
        kept = [r for r in records if r.ledger_close_time >= since]
        return kept, len(kept) < len(records)

    return until


async def backfill_trades(
    client: LedgerClient,
    since: datetime,
    limit: int = 0,
    page_limit: int = DEFAULT_PAGE_LIMIT,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS,
) -> list[TradeRecord]:
    """
    Fetch every trade closed at or after `since`, newest first.

    Args:
        client: Ledger API client
        since: Oldest ledger close time to include (timezone-aware)
        limit: Max trades to return (0 = unlimited)
        page_limit: Records per page requested from the ledger
        max_attempts / initial_delay: Per-page retry settings

    Returns:
        Normalized trades, newest first
    """

    async def fetch_page(cursor: Optional[str]):
        return await client.list_trades(cursor=cursor, limit=page_limit, order=SortOrder.DESC)

    raw = await fetch_all_pages(
        fetch_page,
        limit=limit,
        until=since_boundary(since),
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        endpoint="trades",
    )

    trades = [normalize_trade(t) for t in raw]
    add_trades("backfill", len(trades))
    logger.info(f"[trades] Backfilled {len(trades)} trades since {since.isoformat()}")
    return trades


async def stream_trades(
    client: LedgerClient,
    handler: TradeHandler,
    cursor: Optional[str] = None,
) -> None:
    """
    Stream live trades into `handler` until cancelled or the handler raises.

    Args:
        client: Ledger API client
        handler: Coroutine called once per normalized trade
        cursor: Paging token to resume after (None = "now")
    """
    cursor = cursor or "now"
    delay_ms = RECONNECT_INITIAL_DELAY_MS
    reconnect_count = 0

    while True:
        logger.info(f"[trades/stream] Connecting from cursor {cursor}")
        try:
            async for trade in client.stream_trades(cursor=cursor):
                await handler(normalize_trade(trade))
                add_trades("stream", 1)
                cursor = trade.paging_token or cursor
                delay_ms = RECONNECT_INITIAL_DELAY_MS
            logger.warning("[trades/stream] Stream closed by server")
        except LedgerUnavailableError as e:
            logger.error(f"[trades/stream] Connection error: {e}")

        reconnect_count += 1
        logger.info(
            f"[trades/stream] Reconnecting in {delay_ms}ms (attempt {reconnect_count})"
        )
        await asyncio.sleep(delay_ms / 1000)

        delay_ms = min(
            int(delay_ms * RECONNECT_BACKOFF_MULTIPLIER),
            RECONNECT_MAX_DELAY_MS,
        )
