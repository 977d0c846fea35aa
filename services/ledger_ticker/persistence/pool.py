"""
Database Connection Pool

Async PostgreSQL connection pool (asyncpg) with schema initialization from
schema_postgres.sql.
"""

import logging
import re
from pathlib import Path
from typing import Optional

import asyncpg

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema_postgres.sql"
REQUIRED_TABLES = ("issuers", "assets", "trades", "orderbook_stats")


def split_schema_statements(schema_sql: str) -> list[str]:
    """Strip SQL comments and split a script into statements."""
    schema_sql = re.sub(r"--[^\n]*", "", schema_sql)
    schema_sql = re.sub(r"/\*.*?\*/", "", schema_sql, flags=re.DOTALL)
    return [s.strip() for s in schema_sql.split(";") if s.strip()]


class DatabasePool:
    """
    Async database connection pool.

    Usage:
        pool = DatabasePool()
        await pool.connect(database_url)
        async with pool.acquire() as conn:
            await conn.fetch("SELECT * FROM assets")
        await pool.close()
    """

    def __init__(self):
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(
        self,
        database_url: str,
        min_size: int = 2,
        max_size: int = 10,
    ) -> None:
        """Create the pool. A second call is a no-op."""
        if self._pool is not None:
            logger.warning("Pool already connected")
            return

        self._pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
        )
        logger.info(f"Database pool created (min={min_size}, max={max_size})")

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    def _require_pool(self) -> asyncpg.Pool:
        if not self._pool:
            raise RuntimeError("Database pool not connected")
        return self._pool

    def acquire(self):
        """Acquire a connection from the pool."""
        return self._require_pool().acquire()

    async def execute(self, query: str, *args) -> str:
        return await self._require_pool().execute(query, *args)

    async def fetch(self, query: str, *args) -> list:
        return await self._require_pool().fetch(query, *args)

    async def fetchrow(self, query: str, *args):
        return await self._require_pool().fetchrow(query, *args)

    async def fetchval(self, query: str, *args):
        return await self._require_pool().fetchval(query, *args)

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def check_health(self) -> bool:
        """Check database connectivity."""
        if not self._pool:
            return False
        try:
            await self._pool.fetchval("SELECT 1")
            return True
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def initialize_schema(self, schema_path: Path = SCHEMA_PATH) -> bool:
        """
        Create the ticker tables if they don't exist.

        Safe to call multiple times.

        Returns:
            True if every required table exists afterwards
        """
        pool = self._require_pool()

        if not schema_path.exists():
            logger.error(f"Schema file not found: {schema_path}")
            return False

        statements = split_schema_statements(schema_path.read_text())

        async with pool.acquire() as conn:
            async with conn.transaction():
                for statement in statements:
                    logger.debug(f"Executing: {statement[:80]}...")
                    await conn.execute(statement)

        existing = await pool.fetch(
            "SELECT table_name FROM information_schema.tables WHERE table_name = ANY($1::text[])",
            list(REQUIRED_TABLES),
        )
        missing = set(REQUIRED_TABLES) - {row["table_name"] for row in existing}
        if missing:
            logger.error(f"Schema executed but tables missing: {sorted(missing)}")
            return False

        logger.info("Database schema initialized successfully")
        return True
