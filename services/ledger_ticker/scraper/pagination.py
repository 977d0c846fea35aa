"""
Paginated Fetcher

Walks a cursor-paginated listing endpoint page by page, retrying each page
with backoff.

Stop conditions:
- next cursor equals the current cursor (last-page convention)
- an empty page
- the `until` hook reports a boundary (the page is kept up to it)
- `limit` records collected (last batch truncated to exactly `limit`)

A failure after retries propagates; nothing partial is returned.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..core.constants import RETRY_INITIAL_DELAY_SECONDS, RETRY_MAX_ATTEMPTS
from ..core.metrics import increment_pages
from ..ledger.client import Page
from .retry import retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Given one page's records, return the records to keep and whether to stop
UntilHook = Callable[[list[T]], tuple[list[T], bool]]


async def fetch_all_pages(
    fetch_page: Callable[[Optional[str]], Awaitable[Page[T]]],
    cursor: Optional[str] = None,
    limit: int = 0,
    until: Optional[UntilHook] = None,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS,
    endpoint: str = "listing",
) -> list[T]:
    """
    Fetch every page of a listing.

    Args:
        fetch_page: Coroutine function taking a cursor and returning a Page
        cursor: Starting cursor (None = first page)
        limit: Max records to return (0 = unlimited)
        until: Optional boundary hook applied to each page
        max_attempts: Retry attempts per page
        initial_delay: Retry base delay per page (seconds)
        endpoint: Label for logs and metrics

    Returns:
        All collected records, in listing order
    """
    results: list[T] = []
    page_count = 0

    while True:
        page = await retry(
            max_attempts,
            initial_delay,
            lambda: fetch_page(cursor),
            operation_name=f"fetch {endpoint}",
        )
        page_count += 1
        increment_pages(endpoint)

        records = page.records
        stop = False
        if until is not None:
            records, stop = until(records)

        results.extend(records)

        if limit > 0 and len(results) >= limit:
            results = results[:limit]
            break

        if stop or not page.records or page.is_last:
            break

        cursor = page.next_cursor

    logger.info(f"[pagination] {endpoint}: {len(results)} records from {page_count} pages")
    return results
