"""
Parallel Enrichment Pipeline

Filters and enriches a batch of raw asset records with a fixed number of
worker tasks feeding a single collector through a bounded queue.

Layout:
- Input split into contiguous chunks of ceil(N / parallelism)
- One worker task per non-empty chunk
- asyncio.Queue(maxsize=parallelism) between workers and the collector
- Every record produces exactly one queue entry: a FinalAssetRecord or
  the DISCARDED sentinel

Invariant:
    len(clean) + discarded == len(records), checked after collection.
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional, Union

from ..core.errors import PipelineInvariantError
from ..core.trust_filter import should_discard_asset
from ..core.types import FinalAssetRecord, RawAssetRecord
from .metadata import enrich_asset

logger = logging.getLogger(__name__)

DISCARDED = object()

EnrichFn = Callable[[RawAssetRecord, bool], Awaitable[FinalAssetRecord]]
QueueEntry = Union[FinalAssetRecord, object]


class _DiscardCounter:
    """Discard count shared by all workers."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self.value = 0

    async def increment(self) -> None:
        async with self._lock:
            self.value += 1


async def _process_chunk(
    chunk: list[RawAssetRecord],
    queue: asyncio.Queue,
    counter: _DiscardCounter,
    validate_metadata_doc: bool,
    enrich: EnrichFn,
) -> None:
    for record in chunk:
        entry: QueueEntry = DISCARDED
        try:
            if not should_discard_asset(record, validate_metadata_doc):
                entry = await enrich(record, validate_metadata_doc)
        except Exception as e:
            logger.error(
                f"[pipeline] Unexpected error enriching {record.code}:{record.issuer}: "
                f"{type(e).__name__}: {e}"
            )
            entry = DISCARDED

        if entry is DISCARDED:
            await counter.increment()
        await queue.put(entry)


async def _collect(queue: asyncio.Queue, total: int) -> list[FinalAssetRecord]:
    clean: list[FinalAssetRecord] = []
    remaining = total
    while remaining > 0:
        entry = await queue.get()
        remaining -= 1
        if entry is not DISCARDED:
            clean.append(entry)
        queue.task_done()
    return clean


async def parallel_process_assets(
    records: list[RawAssetRecord],
    parallelism: int,
    validate_metadata_doc: bool = True,
    enrich: Optional[EnrichFn] = None,
) -> tuple[list[FinalAssetRecord], int]:
    """
    Filter and enrich records concurrently.

    Args:
        records: Raw asset records from the ledger
        parallelism: Number of worker tasks (>= 1)
        validate_metadata_doc: False on test networks
        enrich: Enrichment coroutine (defaults to enrich_asset)

    Returns:
        (clean, discarded): enriched records in no particular order,
        including those with validation errors, and the discard count

    Raises:
        ValueError: If parallelism < 1
        PipelineInvariantError: If an entry went missing
    """
    if parallelism < 1:
        raise ValueError(f"parallelism must be >= 1, got {parallelism}")

    total = len(records)
    if total == 0:
        return [], 0

    enrich = enrich or enrich_asset
    queue: asyncio.Queue = asyncio.Queue(maxsize=parallelism)
    counter = _DiscardCounter()

    chunk_size = math.ceil(total / parallelism)
    chunks = [records[i:i + chunk_size] for i in range(0, total, chunk_size)]

    logger.info(
        f"[pipeline] Processing {total} assets with {len(chunks)} workers "
        f"(chunk size {chunk_size})"
    )

    collector = asyncio.create_task(_collect(queue, total))
    workers = [
        asyncio.create_task(
            _process_chunk(chunk, queue, counter, validate_metadata_doc, enrich)
        )
        for chunk in chunks
    ]

    try:
        await asyncio.gather(*workers)
        clean = await collector
    finally:
        # No task may outlive the call holding the queue open
        pending = [task for task in (collector, *workers) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    discarded = counter.value

    if len(clean) + discarded != total:
        raise PipelineInvariantError(
            f"processed {len(clean)} clean + {discarded} discarded != {total} input assets"
        )

    logger.info(f"[pipeline] Done: {len(clean)} clean, {discarded} discarded")
    return clean, discarded
