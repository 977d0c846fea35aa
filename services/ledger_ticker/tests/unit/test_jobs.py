"""
Unit tests for Ledger Ticker jobs, snapshots and the command line.

Tests cover:
- jobs: Scrape-then-store ordering, per-market failure isolation, stream resume
- snapshots: Atomic JSON writes
- cli: Argument parsing and configuration errors
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from services.ledger_ticker import cli, jobs
from services.ledger_ticker.app.config import Settings
from services.ledger_ticker.core.errors import LedgerUnavailableError
from services.ledger_ticker.core.types import (
    AssetType,
    FinalAssetRecord,
    MarketStats,
    OrderbookStats,
    Price,
    RelevantMarket,
    TradeRecord,
)
from services.ledger_ticker.snapshots import write_json_atomic


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return Settings(database_url="", retry_initial_delay_seconds=0)


def make_asset(code: str = "USD") -> FinalAssetRecord:
    return FinalAssetRecord(
        asset_type=AssetType.CREDIT_ALPHANUM4,
        code=code,
        issuer=f"G{code}",
        amount=Decimal("10"),
        num_accounts=20,
        is_valid=True,
        last_valid=NOW,
        last_checked=NOW,
    )


def make_market(code: str) -> RelevantMarket:
    return RelevantMarket(
        base_asset_type="credit_alphanum4",
        base_asset_code=code,
        base_asset_issuer=f"G{code}",
        counter_asset_type="native",
        counter_asset_code="XLM",
        counter_asset_issuer="native",
    )


def make_trade(trade_id: str) -> TradeRecord:
    return TradeRecord(
        id=trade_id,
        paging_token=trade_id,
        ledger_close_time=NOW,
        base_amount=Decimal("1"),
        base_asset_type="credit_alphanum4",
        base_asset_code="USD",
        base_asset_issuer="GUSD",
        counter_amount=Decimal("2"),
        counter_asset_type="native",
        counter_asset_code="XLM",
        counter_asset_issuer="native",
        price=Price(n=2, d=1),
    )


# =============================================================================
# Job Tests
# =============================================================================

class TestRefreshAssets:
    """Test the asset refresh job."""

    @pytest.mark.asyncio
    async def test_scrape_then_upsert(self, config):
        asset_repo = MagicMock()
        asset_repo.ensure_native_asset = AsyncMock()
        asset_repo.upsert_many = AsyncMock(return_value=2)
        clean = [make_asset("USD"), make_asset("EUR")]

        with patch.object(jobs.asset_scraper, "scrape_assets", AsyncMock(return_value=(clean, 3))) as scrape:
            written = await jobs.refresh_assets(MagicMock(), asset_repo, config)

        assert written == 2
        asset_repo.upsert_many.assert_awaited_once_with(clean)
        asset_repo.ensure_native_asset.assert_awaited_once()
        assert scrape.await_args.kwargs["parallelism"] == config.parallelism
        assert scrape.await_args.kwargs["validate_metadata_doc"] is config.validate_metadata_doc

    @pytest.mark.asyncio
    async def test_failed_scrape_writes_nothing(self, config):
        asset_repo = MagicMock()
        asset_repo.upsert_many = AsyncMock()
        failing = AsyncMock(side_effect=LedgerUnavailableError("HTTP 503"))

        with patch.object(jobs.asset_scraper, "scrape_assets", failing):
            with pytest.raises(LedgerUnavailableError):
                await jobs.refresh_assets(MagicMock(), asset_repo, config)

        asset_repo.upsert_many.assert_not_awaited()


class TestTradeJobs:
    """Test trade backfill and stream jobs."""

    @pytest.mark.asyncio
    async def test_backfill_stores_trades(self, config):
        trade_repo = MagicMock()
        trade_repo.insert_many = AsyncMock(return_value=2)
        trades = [make_trade("1"), make_trade("2")]

        with patch.object(jobs.trade_scraper, "backfill_trades", AsyncMock(return_value=trades)) as backfill:
            inserted = await jobs.backfill_trades(MagicMock(), trade_repo, config, hours=6)

        assert inserted == 2
        trade_repo.insert_many.assert_awaited_once_with(trades)
        since = backfill.await_args.kwargs["since"]
        assert 5.9 * 3600 < (datetime.now(timezone.utc) - since).total_seconds() < 6.1 * 3600

    @pytest.mark.asyncio
    async def test_stream_resumes_after_last_trade(self):
        trade_repo = MagicMock()
        trade_repo.get_last_trade = AsyncMock(return_value={"horizon_id": "77-1", "paging_token": "77-1"})
        trade_repo.insert_many = AsyncMock(return_value=1)

        with patch.object(jobs.trade_scraper, "stream_trades", AsyncMock()) as stream:
            await jobs.stream_trades(MagicMock(), trade_repo)

            assert stream.await_args.kwargs["cursor"] == "77-1"
            store = stream.await_args.args[1]
            await store(make_trade("78-1"))

        trade_repo.insert_many.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_starts_now_without_history(self):
        trade_repo = MagicMock()
        trade_repo.get_last_trade = AsyncMock(return_value=None)

        with patch.object(jobs.trade_scraper, "stream_trades", AsyncMock()) as stream:
            await jobs.stream_trades(MagicMock(), trade_repo)

        assert stream.await_args.kwargs["cursor"] is None


class TestRefreshOrderbooks:
    """Test the orderbook refresh job."""

    @pytest.mark.asyncio
    async def test_failed_market_is_skipped(self, config):
        market_repo = MagicMock()
        market_repo.get_relevant_markets = AsyncMock(return_value=[make_market("BAD"), make_market("USD")])
        orderbook_repo = MagicMock()
        orderbook_repo.upsert = AsyncMock(side_effect=[True, False])
        fetch = AsyncMock(side_effect=[
            LedgerUnavailableError("HTTP 503"),
            [OrderbookStats(base_asset_code="USD"), OrderbookStats(base_asset_code="XLM")],
        ])

        with patch.object(jobs.orderbook_scraper, "fetch_market_stats", fetch):
            written = await jobs.refresh_orderbooks(MagicMock(), market_repo, orderbook_repo, config)

        assert written == 1
        assert fetch.await_count == 2
        assert orderbook_repo.upsert.await_count == 2


# =============================================================================
# Snapshot Tests
# =============================================================================

class TestSnapshots:
    """Test snapshot file generation."""

    @pytest.mark.asyncio
    async def test_generate_assets_file(self, tmp_path):
        asset_repo = MagicMock()
        asset_repo.get_valid_assets = AsyncMock(return_value=[{
            "code": "USD", "issuer_account": "GUSD", "type": "credit_alphanum4",
            "num_accounts": 20, "auth_required": False, "auth_revocable": False,
            "amount": Decimal("10.5"), "asset_controlled_by_domain": True,
            "anchor_asset_code": "USD", "anchor_asset_type": "fiat", "display_decimals": 2,
            "name": "US Dollar", "description": "", "conditions": "",
            "is_asset_anchored": True, "fixed_number": 0, "max_number": 0, "is_unlimited": False,
            "redemption_instructions": "", "collateral_addresses": '["GCOLL"]',
            "collateral_address_signatures": "[]", "status": "live", "last_valid": NOW,
            "issuer_name": "Example", "issuer_url": "https://example.com",
            "issuer_toml_url": "https://example.com/.well-known/stellar.toml", "issuer_twitter": "",
        }])

        path = await jobs.generate_assets_file(asset_repo, tmp_path)

        data = json.loads(path.read_text())
        assert path.name == "assets.json"
        asset = data["assets"][0]
        assert asset["amount"] == "10.5"
        assert asset["collateral_addresses"] == ["GCOLL"]
        assert asset["issuer_detail"]["name"] == "Example"
        assert asset["last_valid"] == NOW.isoformat()
        assert isinstance(data["generated_at"], int)

    @pytest.mark.asyncio
    async def test_generate_markets_file(self, tmp_path):
        market_repo = MagicMock()
        market_repo.get_market_stats = AsyncMock(return_value=[
            MarketStats(trade_pair_name="BTC_XLM", base_volume_24h=2.0, close_time=NOW),
        ])

        path = await jobs.generate_markets_file(market_repo, tmp_path / "out")

        data = json.loads(path.read_text())
        assert path.name == "markets.json"
        assert "generatedAt" in data
        assert data["pairs"][0]["tradePairName"] == "BTC_XLM"
        assert data["pairs"][0]["baseVolume24h"] == 2.0

    def test_write_json_atomic_replaces_file(self, tmp_path):
        target = tmp_path / "data.json"
        write_json_atomic({"v": 1}, target)
        write_json_atomic({"v": 2, "amount": Decimal("1.5")}, target)

        assert json.loads(target.read_text()) == {"v": 2, "amount": "1.5"}
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_write_json_atomic_failure_keeps_old_file(self, tmp_path):
        target = tmp_path / "data.json"
        write_json_atomic({"v": 1}, target)

        circular: dict = {}
        circular["self"] = circular
        with pytest.raises(ValueError):
            write_json_atomic(circular, target)

        assert json.loads(target.read_text()) == {"v": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]


# =============================================================================
# CLI Tests
# =============================================================================

class TestCli:
    """Test command line parsing."""

    def test_parse_ingest_trades(self):
        args = cli.build_parser().parse_args(["ingest-trades", "--stream"])
        assert args.command == "ingest-trades"
        assert args.stream is True
        assert args.hours is None

    def test_parse_generate_markets_output_dir(self):
        args = cli.build_parser().parse_args(["generate-markets", "--output-dir", "/tmp/out"])
        assert str(args.output_dir) == "/tmp/out"

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["explode"])

    def test_missing_database_url(self):
        with patch.object(cli, "settings", Settings(database_url="")):
            with pytest.raises(SystemExit, match="DATABASE_URL"):
                cli.main(["migrate"])
