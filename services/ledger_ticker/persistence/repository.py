"""
Ticker Repositories

CRUD operations for issuers, assets, trades, orderbook statistics and the
market aggregates built from them.

Tables are defined in schema_postgres.sql. Assets are keyed by
(code, issuer_account); trades and orderbook rows reference assets by id,
resolved from the asset's code and issuer at insert time.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from ..core.constants import (
    NATIVE_ASSET_CODE,
    NATIVE_ASSET_ISSUER,
    RELEVANT_MARKET_WINDOW_DAYS,
)
from ..core.orderbook_stats import calc_spread
from ..core.types import (
    AssetType,
    FinalAssetRecord,
    IssuerMetadataDocument,
    MarketStats,
    OrderbookStats,
    RelevantMarket,
    TradeRecord,
)
from .pool import DatabasePool
from .queries import OptionalVar, build_upsert_query, generate_where_clause, parse_pair_name

logger = logging.getLogger(__name__)


ISSUER_FIELDS = (
    "public_key",
    "name",
    "url",
    "toml_url",
    "federation_server",
    "auth_server",
    "transfer_server",
    "web_auth_endpoint",
    "deposit_server",
    "org_twitter",
)

ASSET_FIELDS = (
    "code",
    "issuer_account",
    "type",
    "num_accounts",
    "auth_required",
    "auth_revocable",
    "amount",
    "asset_controlled_by_domain",
    "anchor_asset_code",
    "anchor_asset_type",
    "is_valid",
    "validation_error",
    "last_valid",
    "last_checked",
    "display_decimals",
    "name",
    "description",
    "conditions",
    "is_asset_anchored",
    "fixed_number",
    "max_number",
    "is_unlimited",
    "redemption_instructions",
    "collateral_addresses",
    "collateral_address_signatures",
    "status",
    "issuer_id",
)

UPSERT_ISSUER_QUERY = build_upsert_query(
    "issuers",
    ISSUER_FIELDS,
    conflict_fields=("public_key",),
    returning="id",
)

# last_valid is only written when the asset is valid in this run
UPSERT_ASSET_QUERY = build_upsert_query(
    "assets",
    ASSET_FIELDS,
    conflict_fields=("code", "issuer_account"),
    coalesce_fields=("last_valid",),
)

PAIR_NAME_SQL = (
    "concat(COALESCE(NULLIF(b.anchor_asset_code, ''), b.code), '_', "
    "COALESCE(NULLIF(c.anchor_asset_code, ''), c.code))"
)


def issuer_to_row(public_key: str, document: IssuerMetadataDocument, toml_url: str) -> tuple:
    docs = document.documentation
    return (
        public_key,
        docs.org_name,
        docs.org_url,
        toml_url,
        document.federation_server,
        document.auth_server,
        document.transfer_server,
        document.web_auth_endpoint,
        document.deposit_server,
        docs.org_twitter,
    )


def asset_to_row(asset: FinalAssetRecord, issuer_id: Optional[int]) -> tuple:
    """Map a FinalAssetRecord to ASSET_FIELDS order."""
    return (
        asset.code,
        asset.issuer,
        asset.asset_type.value,
        asset.num_accounts,
        asset.auth_required,
        asset.auth_revocable,
        asset.amount,
        asset.domain_controlled,
        asset.anchor_asset,
        asset.anchor_asset_type,
        asset.is_valid,
        asset.validation_error or "",
        asset.last_valid,
        asset.last_checked,
        asset.display_decimals,
        asset.name,
        asset.desc,
        asset.conditions,
        asset.is_asset_anchored,
        asset.fixed_number,
        asset.max_number,
        asset.is_unlimited,
        asset.redemption_instructions,
        json.dumps(asset.collateral_addresses),
        json.dumps(asset.collateral_address_signatures),
        asset.status,
        issuer_id,
    )


def _command_count(status: str) -> int:
    """Row count from an asyncpg command status ("INSERT 0 1")."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class IssuerRepository:
    """
    Repository for asset issuers.

    Usage:
        repo = IssuerRepository(pool)
        issuer_id = await repo.upsert(public_key, document, toml_url)
    """

    def __init__(self, pool: DatabasePool):
        self.pool = pool

    async def upsert(
        self,
        public_key: str,
        document: IssuerMetadataDocument,
        toml_url: str = "",
        conn=None,
    ) -> int:
        """Insert or update an issuer and return its id."""
        executor = conn or self.pool
        try:
            return await executor.fetchval(
                UPSERT_ISSUER_QUERY, *issuer_to_row(public_key, document, toml_url)
            )
        except Exception as e:
            logger.error(f"Failed to upsert issuer {public_key}: {e}")
            raise


class AssetRepository:
    """
    Repository for the enriched asset catalog.

    Usage:
        repo = AssetRepository(pool)
        await repo.upsert_many(clean_assets)
        rows = await repo.get_valid_assets()
    """

    def __init__(self, pool: DatabasePool, issuers: Optional[IssuerRepository] = None):
        self.pool = pool
        self.issuers = issuers or IssuerRepository(pool)

    async def upsert_many(self, assets: list[FinalAssetRecord]) -> int:
        """
        Upsert a catalog generation (issuers first) in one transaction.

        Returns:
            Number of assets written
        """
        if not assets:
            return 0

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    for asset in assets:
                        issuer_id = await self.issuers.upsert(
                            asset.issuer, asset.issuer_details, asset.toml_url, conn=conn
                        )
                        await conn.execute(UPSERT_ASSET_QUERY, *asset_to_row(asset, issuer_id))

            logger.info(f"Upserted {len(assets)} assets")
            return len(assets)

        except Exception as e:
            logger.error(f"Failed to upsert assets: {e}")
            raise

    async def ensure_native_asset(self, now: datetime) -> None:
        """Make sure the native asset has a row so its trades can be stored."""
        native = FinalAssetRecord(
            asset_type=AssetType.NATIVE,
            code=NATIVE_ASSET_CODE,
            issuer=NATIVE_ASSET_ISSUER,
            amount=0,
            num_accounts=0,
            is_valid=True,
            last_valid=now,
            last_checked=now,
        )
        await self.pool.execute(UPSERT_ASSET_QUERY, *asset_to_row(native, None))

    async def get_valid_assets(self) -> list[dict[str, Any]]:
        """Valid assets joined with their issuer, most held first."""
        query = """
            SELECT
                a.code, a.issuer_account, a.type, a.num_accounts,
                a.auth_required, a.auth_revocable, a.amount,
                a.asset_controlled_by_domain, a.anchor_asset_code, a.anchor_asset_type,
                a.display_decimals, a.name, a.description, a.conditions,
                a.is_asset_anchored, a.fixed_number, a.max_number, a.is_unlimited,
                a.redemption_instructions, a.collateral_addresses,
                a.collateral_address_signatures, a.status, a.last_valid,
                COALESCE(i.name, '') AS issuer_name,
                COALESCE(i.url, '') AS issuer_url,
                COALESCE(i.toml_url, '') AS issuer_toml_url,
                COALESCE(i.org_twitter, '') AS issuer_twitter
            FROM assets AS a
                LEFT JOIN issuers AS i ON a.issuer_id = i.id
            WHERE a.is_valid = TRUE
              AND a.type <> 'native'
            ORDER BY a.num_accounts DESC, a.code ASC
        """
        try:
            rows = await self.pool.fetch(query)
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to get valid assets: {e}")
            raise


class TradeRepository:
    """
    Repository for trades.

    Trades are idempotent on the ledger-assigned id; re-delivered trades
    are ignored. Trades whose assets are not in the catalog are skipped.
    """

    INSERT_QUERY = """
        INSERT INTO trades (
            horizon_id, paging_token, ledger_close_time, offer_id,
            base_offer_id, base_account, base_amount, base_asset_id,
            counter_offer_id, counter_account, counter_amount, counter_asset_id,
            base_is_seller, price
        )
        SELECT $1, $2, $3, $4, $5, $6, $7, b.id, $8, $9, $10, c.id, $11, $12
        FROM assets AS b, assets AS c
        WHERE b.code = $13 AND b.issuer_account = $14
          AND c.code = $15 AND c.issuer_account = $16
        ON CONFLICT (horizon_id) DO NOTHING
    """

    def __init__(self, pool: DatabasePool):
        self.pool = pool

    @staticmethod
    def _trade_args(trade: TradeRecord) -> tuple:
        return (
            trade.id,
            trade.paging_token,
            trade.ledger_close_time,
            trade.offer_id,
            trade.base_offer_id,
            trade.base_account,
            trade.base_amount,
            trade.counter_offer_id,
            trade.counter_account,
            trade.counter_amount,
            trade.base_is_seller,
            trade.price.as_float(),
            trade.base_asset_code,
            trade.base_asset_issuer,
            trade.counter_asset_code,
            trade.counter_asset_issuer,
        )

    async def insert_many(self, trades: list[TradeRecord]) -> int:
        """
        Insert trades in one transaction.

        Returns:
            Number of new rows
        """
        if not trades:
            return 0

        try:
            inserted = 0
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    for trade in trades:
                        status = await conn.execute(self.INSERT_QUERY, *self._trade_args(trade))
                        inserted += _command_count(status)

            logger.debug(f"Inserted {inserted}/{len(trades)} trades")
            return inserted

        except Exception as e:
            logger.error(f"Failed to insert trades: {e}")
            raise

    async def get_last_trade(self) -> Optional[dict[str, Any]]:
        """Most recently closed trade (horizon_id, paging_token, ledger_close_time)."""
        query = """
            SELECT horizon_id, paging_token, ledger_close_time
            FROM trades
            ORDER BY ledger_close_time DESC, id DESC
            LIMIT 1
        """
        row = await self.pool.fetchrow(query)
        return dict(row) if row else None


class OrderbookRepository:
    """Repository for per-direction orderbook statistics."""

    UPSERT_QUERY = """
        INSERT INTO orderbook_stats (
            base_asset_id, counter_asset_id,
            num_bids, bid_volume, highest_bid,
            num_asks, ask_volume, lowest_ask,
            spread, spread_mid_point, updated_at
        )
        SELECT b.id, c.id, $1, $2, $3, $4, $5, $6, $7, $8, $9
        FROM assets AS b, assets AS c
        WHERE b.code = $10 AND b.issuer_account = $11
          AND c.code = $12 AND c.issuer_account = $13
        ON CONFLICT (base_asset_id, counter_asset_id) DO UPDATE SET
            num_bids = EXCLUDED.num_bids,
            bid_volume = EXCLUDED.bid_volume,
            highest_bid = EXCLUDED.highest_bid,
            num_asks = EXCLUDED.num_asks,
            ask_volume = EXCLUDED.ask_volume,
            lowest_ask = EXCLUDED.lowest_ask,
            spread = EXCLUDED.spread,
            spread_mid_point = EXCLUDED.spread_mid_point,
            updated_at = EXCLUDED.updated_at
    """

    def __init__(self, pool: DatabasePool):
        self.pool = pool

    async def upsert(self, stats: OrderbookStats) -> bool:
        """Write stats for one direction. False if either asset is unknown."""
        try:
            status = await self.pool.execute(
                self.UPSERT_QUERY,
                stats.num_bids,
                stats.bid_volume,
                stats.highest_bid,
                stats.num_asks,
                stats.ask_volume,
                stats.lowest_ask,
                stats.spread,
                stats.spread_mid_point,
                stats.updated_at,
                stats.base_asset_code,
                stats.base_asset_issuer,
                stats.counter_asset_code,
                stats.counter_asset_issuer,
            )
            return _command_count(status) > 0
        except Exception as e:
            logger.error(
                f"Failed to upsert orderbook stats "
                f"{stats.base_asset_code}/{stats.counter_asset_code}: {e}"
            )
            raise

    async def get_pair(
        self,
        base_code: str,
        base_issuer: str,
        counter_code: str,
        counter_issuer: str,
    ) -> Optional[OrderbookStats]:
        """Stored stats for one direction of a pair."""
        query = """
            SELECT
                b.type AS base_asset_type, b.code AS base_asset_code,
                b.issuer_account AS base_asset_issuer,
                c.type AS counter_asset_type, c.code AS counter_asset_code,
                c.issuer_account AS counter_asset_issuer,
                os.num_bids, os.bid_volume, os.highest_bid,
                os.num_asks, os.ask_volume, os.lowest_ask,
                os.spread, os.spread_mid_point, os.updated_at
            FROM orderbook_stats AS os
                JOIN assets AS b ON os.base_asset_id = b.id
                JOIN assets AS c ON os.counter_asset_id = c.id
            WHERE b.code = $1 AND b.issuer_account = $2
              AND c.code = $3 AND c.issuer_account = $4
        """
        row = await self.pool.fetchrow(query, base_code, base_issuer, counter_code, counter_issuer)
        return OrderbookStats(**dict(row)) if row else None


class MarketRepository:
    """Read-only market aggregates over trades and orderbook stats."""

    def __init__(self, pool: DatabasePool):
        self.pool = pool

    async def get_relevant_markets(
        self, days: int = RELEVANT_MARKET_WINDOW_DAYS
    ) -> list[RelevantMarket]:
        """Pairs of valid assets traded in the last `days` days."""
        query = """
            SELECT
                b.type AS base_asset_type, b.code AS base_asset_code,
                b.issuer_account AS base_asset_issuer,
                c.type AS counter_asset_type, c.code AS counter_asset_code,
                c.issuer_account AS counter_asset_issuer
            FROM trades AS t
                JOIN assets AS b ON t.base_asset_id = b.id
                JOIN assets AS c ON t.counter_asset_id = c.id
            WHERE b.is_valid = TRUE AND c.is_valid = TRUE
              AND t.ledger_close_time > now() - make_interval(days => $1)
            GROUP BY b.id, b.type, b.code, b.issuer_account,
                     c.id, c.type, c.code, c.issuer_account
        """
        rows = await self.pool.fetch(query, days)
        return [RelevantMarket(**dict(row)) for row in rows]

    @staticmethod
    def build_market_query(
        pair_name: Optional[str], hours: int
    ) -> tuple[str, list[Any]]:
        """
        Build the aggregated market query, optionally for one pair.

        Raises:
            InvalidPairNameError: If pair_name is not BASE_COUNTER
        """
        base_code: Optional[str] = None
        counter_code: Optional[str] = None
        if pair_name is not None:
            base_code, counter_code = parse_pair_name(pair_name)

        where, args = generate_where_clause([
            OptionalVar("b.is_valid", True),
            OptionalVar("c.is_valid", True),
            OptionalVar("COALESCE(NULLIF(b.anchor_asset_code, ''), b.code)", base_code),
            OptionalVar("COALESCE(NULLIF(c.anchor_asset_code, ''), c.code)", counter_code),
        ])
        args.append(hours)
        where += f" AND t.ledger_close_time > now() - make_interval(hours => ${len(args)})"

        query = f"""
            WITH pairs AS (
                SELECT
                    {PAIR_NAME_SQL} AS trade_pair_name,
                    sum(t.base_amount) AS base_volume_24h,
                    sum(t.counter_amount) AS counter_volume_24h,
                    count(*) AS trade_count_24h,
                    (array_agg(t.price ORDER BY t.ledger_close_time ASC))[1] AS open_price_24h,
                    max(t.price) AS highest_price_24h,
                    min(t.price) AS lowest_price_24h,
                    (array_agg(t.price ORDER BY t.ledger_close_time DESC))[1] AS last_price,
                    max(t.ledger_close_time) AS close_time
                FROM trades AS t
                    JOIN assets AS b ON t.base_asset_id = b.id
                    JOIN assets AS c ON t.counter_asset_id = c.id
                {where}
                GROUP BY trade_pair_name
            ), books AS (
                SELECT
                    {PAIR_NAME_SQL} AS trade_pair_name,
                    sum(os.num_bids) AS num_bids,
                    sum(os.bid_volume) AS bid_volume,
                    max(os.highest_bid) AS highest_bid,
                    sum(os.num_asks) AS num_asks,
                    sum(os.ask_volume) AS ask_volume,
                    min(NULLIF(os.lowest_ask, 0)) AS lowest_ask
                FROM orderbook_stats AS os
                    JOIN assets AS b ON os.base_asset_id = b.id
                    JOIN assets AS c ON os.counter_asset_id = c.id
                GROUP BY trade_pair_name
            )
            SELECT
                p.*,
                COALESCE(bk.num_bids, 0) AS num_bids,
                COALESCE(bk.bid_volume, 0.0) AS bid_volume,
                COALESCE(bk.highest_bid, 0.0) AS highest_bid,
                COALESCE(bk.num_asks, 0) AS num_asks,
                COALESCE(bk.ask_volume, 0.0) AS ask_volume,
                COALESCE(bk.lowest_ask, 0.0) AS lowest_ask
            FROM pairs AS p
                LEFT JOIN books AS bk ON p.trade_pair_name = bk.trade_pair_name
            ORDER BY p.trade_pair_name
        """
        return query, args

    async def get_market_stats(
        self, pair_name: Optional[str] = None, hours: int = 24
    ) -> list[MarketStats]:
        """Aggregated market data for the last `hours` hours."""
        query, args = self.build_market_query(pair_name, hours)
        rows = await self.pool.fetch(query, *args)
        return [self._row_to_market_stats(row) for row in rows]

    @staticmethod
    def _row_to_market_stats(row) -> MarketStats:
        open_price = float(row["open_price_24h"] or 0.0)
        last_price = float(row["last_price"] or 0.0)
        highest_bid = float(row["highest_bid"])
        lowest_ask = float(row["lowest_ask"])
        spread, mid_point = calc_spread(highest_bid, lowest_ask)

        return MarketStats(
            trade_pair_name=row["trade_pair_name"],
            base_volume_24h=float(row["base_volume_24h"] or 0.0),
            counter_volume_24h=float(row["counter_volume_24h"] or 0.0),
            trade_count_24h=int(row["trade_count_24h"]),
            open_price_24h=open_price,
            highest_price_24h=float(row["highest_price_24h"] or 0.0),
            lowest_price_24h=float(row["lowest_price_24h"] or 0.0),
            price_change_24h=last_price - open_price,
            last_price=last_price,
            close_time=row["close_time"],
            num_bids=int(row["num_bids"]),
            bid_volume=float(row["bid_volume"]),
            highest_bid=highest_bid,
            num_asks=int(row["num_asks"]),
            ask_volume=float(row["ask_volume"]),
            lowest_ask=lowest_ask,
            spread=spread,
            spread_mid_point=mid_point,
        )
