"""
Ledger Ticker command line.

Each subcommand runs one job and exits, except `ingest-trades --stream`
and `serve`, which run until interrupted.
"""

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

from . import jobs  # noqa: E402
from .app.config import Settings, settings  # noqa: E402
from .ledger.client import LedgerClient  # noqa: E402
from .persistence import (  # noqa: E402
    AssetRepository,
    DatabasePool,
    MarketRepository,
    OrderbookRepository,
    TradeRepository,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_pool(config: Settings) -> AsyncIterator[DatabasePool]:
    """Connected database pool for the duration of a command."""
    if not config.database_url:
        raise SystemExit("DATABASE_URL is not configured")

    pool = DatabasePool()
    await pool.connect(config.database_url)
    try:
        yield pool
    finally:
        await pool.close()


async def cmd_migrate(args: argparse.Namespace, config: Settings) -> int:
    async with open_pool(config) as pool:
        ok = await pool.initialize_schema()
    return 0 if ok else 1


async def cmd_ingest_assets(args: argparse.Namespace, config: Settings) -> int:
    async with open_pool(config) as pool, LedgerClient(config.ledger_url) as client:
        await jobs.refresh_assets(client, AssetRepository(pool), config)
    return 0


async def cmd_ingest_trades(args: argparse.Namespace, config: Settings) -> int:
    async with open_pool(config) as pool, LedgerClient(config.ledger_url) as client:
        trade_repo = TradeRepository(pool)
        if args.stream:
            await jobs.stream_trades(client, trade_repo)
        else:
            await jobs.backfill_trades(client, trade_repo, config, hours=args.hours)
    return 0


async def cmd_ingest_orderbooks(args: argparse.Namespace, config: Settings) -> int:
    async with open_pool(config) as pool, LedgerClient(config.ledger_url) as client:
        await jobs.refresh_orderbooks(
            client, MarketRepository(pool), OrderbookRepository(pool), config
        )
    return 0


async def cmd_generate_assets(args: argparse.Namespace, config: Settings) -> int:
    async with open_pool(config) as pool:
        await jobs.generate_assets_file(AssetRepository(pool), args.output_dir or config.output_dir)
    return 0


async def cmd_generate_markets(args: argparse.Namespace, config: Settings) -> int:
    async with open_pool(config) as pool:
        await jobs.generate_markets_file(MarketRepository(pool), args.output_dir or config.output_dir)
    return 0


def cmd_serve(args: argparse.Namespace, config: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "services.ledger_ticker.app.main:app",
        host=args.host or config.host,
        port=args.port or config.port,
    )
    return 0


COMMANDS = {
    "migrate": cmd_migrate,
    "ingest-assets": cmd_ingest_assets,
    "ingest-trades": cmd_ingest_trades,
    "ingest-orderbooks": cmd_ingest_orderbooks,
    "generate-assets": cmd_generate_assets,
    "generate-markets": cmd_generate_markets,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-ticker",
        description="Collect asset and market data from the ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ledger-ticker migrate
  ledger-ticker ingest-assets
  ledger-ticker ingest-trades --hours 24
  ledger-ticker ingest-trades --stream
  ledger-ticker generate-markets --output-dir ./data
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override LOG_LEVEL (e.g. DEBUG)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate", help="Create database tables")
    sub.add_parser("ingest-assets", help="Scrape, validate and store the asset catalog")

    trades = sub.add_parser("ingest-trades", help="Backfill or stream trades")
    trades.add_argument(
        "--stream",
        action="store_true",
        help="Follow the live trade feed instead of backfilling",
    )
    trades.add_argument(
        "--hours",
        type=int,
        default=None,
        help="Backfill window in hours (default: TRADE_BACKFILL_HOURS)",
    )

    sub.add_parser("ingest-orderbooks", help="Refresh orderbook stats for active markets")

    for name, help_text in (
        ("generate-assets", "Write assets.json"),
        ("generate-markets", "Write markets.json"),
    ):
        gen = sub.add_parser(name, help=help_text)
        gen.add_argument(
            "--output-dir",
            type=Path,
            default=None,
            help="Snapshot directory (default: OUTPUT_DIR)",
        )

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, (args.log_level or settings.log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        return cmd_serve(args, settings)

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
