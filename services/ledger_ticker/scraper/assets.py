"""
Asset Catalog Scraper

Fetches the full asset listing, then filters and enriches it.
"""

import logging
import time
from functools import partial
from typing import Optional

import httpx

from ..core.constants import (
    DEFAULT_PAGE_LIMIT,
    DEFAULT_PARALLELISM,
    METADATA_FETCH_TIMEOUT_SECONDS,
    METADATA_USER_AGENT,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_ATTEMPTS,
)
from ..core.metrics import record_pipeline_run
from ..core.types import FinalAssetRecord, RawAssetRecord
from ..ledger.client import LedgerClient
from .metadata import enrich_asset
from .pagination import fetch_all_pages
from .pipeline import parallel_process_assets

logger = logging.getLogger(__name__)


async def fetch_all_assets(
    client: LedgerClient,
    limit: int = 0,
    page_limit: int = DEFAULT_PAGE_LIMIT,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS,
) -> list[RawAssetRecord]:
    """Fetch the asset listing (limit=0 fetches everything)."""

    async def fetch_page(cursor: Optional[str]):
        return await client.list_assets(cursor=cursor, limit=page_limit)

    return await fetch_all_pages(
        fetch_page,
        limit=limit,
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        endpoint="assets",
    )


async def scrape_assets(
    client: LedgerClient,
    parallelism: int = DEFAULT_PARALLELISM,
    validate_metadata_doc: bool = True,
    limit: int = 0,
    page_limit: int = DEFAULT_PAGE_LIMIT,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS,
    metadata_timeout: float = METADATA_FETCH_TIMEOUT_SECONDS,
    user_agent: str = METADATA_USER_AGENT,
) -> tuple[list[FinalAssetRecord], int]:
    """
    Fetch, filter and enrich the asset catalog.

    Returns:
        (clean, discarded) as produced by the enrichment pipeline
    """
    start = time.monotonic()
    records = await fetch_all_assets(
        client,
        limit=limit,
        page_limit=page_limit,
        max_attempts=max_attempts,
        initial_delay=initial_delay,
    )

    async with httpx.AsyncClient(timeout=metadata_timeout) as metadata_client:
        enrich = partial(
            _enrich_with_client,
            client=metadata_client,
            timeout=metadata_timeout,
            user_agent=user_agent,
        )
        clean, discarded = await parallel_process_assets(
            records,
            parallelism,
            validate_metadata_doc=validate_metadata_doc,
            enrich=enrich,
        )

    valid = sum(1 for a in clean if a.is_valid)
    record_pipeline_run(
        valid=valid,
        invalid=len(clean) - valid,
        discarded=discarded,
        duration_seconds=time.monotonic() - start,
    )
    logger.info(
        f"[assets] Scraped {len(records)} assets: {valid} valid, "
        f"{len(clean) - valid} invalid, {discarded} discarded"
    )
    return clean, discarded


async def _enrich_with_client(
    record: RawAssetRecord,
    validate_metadata_doc: bool,
    client: httpx.AsyncClient,
    timeout: float,
    user_agent: str,
) -> FinalAssetRecord:
    return await enrich_asset(
        record,
        validate_metadata_doc,
        client=client,
        timeout=timeout,
        user_agent=user_agent,
    )
