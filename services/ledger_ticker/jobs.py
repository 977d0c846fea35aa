"""
Ledger Ticker Jobs

Wires the ledger client, the scrapers and the repositories into the units
of work run by the CLI:

- refresh_assets: scrape + enrich the catalog, then upsert it
- backfill_trades: load recent trades
- stream_trades: follow the live trade feed
- refresh_orderbooks: recompute orderbook stats for relevant markets
- generate_assets_file / generate_markets_file: JSON snapshots

Storage is only written after the corresponding scrape has fully returned;
a failed scrape commits nothing.
"""

import json
import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .app.config import Settings
from .core.constants import ASSETS_FILENAME, MARKETS_FILENAME
from .core.errors import LedgerError
from .core.metrics import record_db_write, record_orderbook_refresh
from .core.types import MarketSummary, TradeRecord
from .ledger.client import LedgerClient
from .persistence import (
    AssetRepository,
    MarketRepository,
    OrderbookRepository,
    TradeRepository,
)
from .scraper import assets as asset_scraper
from .scraper import orderbook as orderbook_scraper
from .scraper import trades as trade_scraper
from .snapshots import write_json_atomic

logger = logging.getLogger(__name__)


async def refresh_assets(
    client: LedgerClient,
    asset_repo: AssetRepository,
    settings: Settings,
) -> int:
    """
    Scrape the asset catalog and upsert it.

    Returns:
        Number of assets written
    """
    clean, discarded = await asset_scraper.scrape_assets(
        client,
        parallelism=settings.parallelism,
        validate_metadata_doc=settings.validate_metadata_doc,
        limit=settings.asset_fetch_limit,
        page_limit=settings.page_limit,
        max_attempts=settings.retry_max_attempts,
        initial_delay=settings.retry_initial_delay_seconds,
        metadata_timeout=settings.metadata_fetch_timeout_seconds,
        user_agent=settings.user_agent,
    )

    start_time = time.time()
    try:
        await asset_repo.ensure_native_asset(datetime.now(timezone.utc))
        written = await asset_repo.upsert_many(clean)
        record_db_write("assets", success=True, latency_seconds=time.time() - start_time)
    except Exception:
        record_db_write("assets", success=False, latency_seconds=time.time() - start_time)
        raise

    logger.info(f"Asset refresh complete: {written} written, {discarded} discarded")
    return written


async def backfill_trades(
    client: LedgerClient,
    trade_repo: TradeRepository,
    settings: Settings,
    hours: int | None = None,
) -> int:
    """
    Load trades closed in the last `hours` hours.

    Returns:
        Number of new trades stored
    """
    hours = hours or settings.trade_backfill_hours
    since = datetime.now(timezone.utc) - timedelta(hours=hours)

    trades = await trade_scraper.backfill_trades(
        client,
        since=since,
        page_limit=settings.page_limit,
        max_attempts=settings.retry_max_attempts,
        initial_delay=settings.retry_initial_delay_seconds,
    )

    start_time = time.time()
    try:
        inserted = await trade_repo.insert_many(trades)
        record_db_write("trades", success=True, latency_seconds=time.time() - start_time)
    except Exception:
        record_db_write("trades", success=False, latency_seconds=time.time() - start_time)
        raise

    logger.info(f"Trade backfill complete: {inserted} new of {len(trades)} fetched")
    return inserted


async def stream_trades(
    client: LedgerClient,
    trade_repo: TradeRepository,
) -> None:
    """Follow the live trade feed, resuming after the last stored trade."""
    last = await trade_repo.get_last_trade()
    cursor = last["paging_token"] if last and last["paging_token"] else None

    async def store(trade: TradeRecord) -> None:
        start_time = time.time()
        try:
            await trade_repo.insert_many([trade])
            record_db_write("trades", success=True, latency_seconds=time.time() - start_time)
        except Exception:
            record_db_write("trades", success=False, latency_seconds=time.time() - start_time)
            raise

    await trade_scraper.stream_trades(client, store, cursor=cursor)


async def refresh_orderbooks(
    client: LedgerClient,
    market_repo: MarketRepository,
    orderbook_repo: OrderbookRepository,
    settings: Settings,
) -> int:
    """
    Recompute orderbook statistics for every relevant market.

    A market whose fetch fails is logged and skipped.

    Returns:
        Number of stats rows written
    """
    markets = await market_repo.get_relevant_markets()
    logger.info(f"Refreshing orderbooks for {len(markets)} markets")

    written = 0
    for market in markets:
        try:
            stats_list = await orderbook_scraper.fetch_market_stats(
                client,
                market,
                max_attempts=settings.retry_max_attempts,
                initial_delay=settings.retry_initial_delay_seconds,
            )
        except LedgerError as e:
            logger.error(
                f"Orderbook fetch failed for {market.base_asset_code}/"
                f"{market.counter_asset_code}: {e}"
            )
            record_orderbook_refresh(success=False)
            continue

        for stats in stats_list:
            if await orderbook_repo.upsert(stats):
                written += 1
        record_orderbook_refresh(success=True)

    logger.info(f"Orderbook refresh complete: {written} rows written")
    return written


def _asset_row_to_json(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "code": row["code"],
        "issuer": row["issuer_account"],
        "type": row["type"],
        "num_accounts": row["num_accounts"],
        "auth_required": row["auth_required"],
        "auth_revocable": row["auth_revocable"],
        "amount": str(row["amount"]),
        "asset_controlled_by_domain": row["asset_controlled_by_domain"],
        "anchor_asset": row["anchor_asset_code"],
        "anchor_asset_type": row["anchor_asset_type"],
        "display_decimals": row["display_decimals"],
        "name": row["name"],
        "desc": row["description"],
        "conditions": row["conditions"],
        "is_asset_anchored": row["is_asset_anchored"],
        "fixed_number": row["fixed_number"],
        "max_number": row["max_number"],
        "is_unlimited": row["is_unlimited"],
        "redemption_instructions": row["redemption_instructions"],
        "collateral_addresses": json.loads(row["collateral_addresses"] or "[]"),
        "collateral_address_signatures": json.loads(row["collateral_address_signatures"] or "[]"),
        "status": row["status"],
        "last_valid": row["last_valid"].isoformat() if row["last_valid"] else None,
        "issuer_detail": {
            "name": row["issuer_name"],
            "url": row["issuer_url"],
            "toml_url": row["issuer_toml_url"],
            "twitter": row["issuer_twitter"],
        },
    }


async def generate_assets_file(asset_repo: AssetRepository, output_dir: Path) -> Path:
    """Write the valid asset catalog to assets.json."""
    rows = await asset_repo.get_valid_assets()
    payload = {
        "generated_at": int(time.time() * 1000),
        "assets": [_asset_row_to_json(r) for r in rows],
    }
    path = write_json_atomic(payload, Path(output_dir) / ASSETS_FILENAME)
    logger.info(f"Generated {path} with {len(rows)} assets")
    return path


async def generate_markets_file(market_repo: MarketRepository, output_dir: Path) -> Path:
    """Write 24h market statistics to markets.json."""
    pairs = await market_repo.get_market_stats()
    summary = MarketSummary(generated_at=int(time.time() * 1000), pairs=pairs)
    path = write_json_atomic(
        summary.model_dump(mode="json", by_alias=True),
        Path(output_dir) / MARKETS_FILENAME,
    )
    logger.info(f"Generated {path} with {len(pairs)} markets")
    return path
