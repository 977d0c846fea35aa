"""
Ledger Ticker Service

Read-only HTTP API over the asset catalog and market statistics collected
by the ticker jobs.

API Endpoints:
- GET /health - Service health check
- GET /v0/assets - Valid asset catalog
- GET /v0/markets - 24h market statistics (optionally one pair)
- GET /v0/orderbook - Stored orderbook stats for one direction of a pair
- GET /metrics - Prometheus metrics endpoint
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routes import health, metrics, v0
from ..persistence import (
    AssetRepository,
    DatabasePool,
    MarketRepository,
    OrderbookRepository,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instances for app state
_db_pool: Optional[DatabasePool] = None


async def _database_health() -> dict:
    if _db_pool is None:
        return {"status": "degraded", "message": "No database configured"}
    if await _db_pool.check_health():
        return {"status": "healthy"}
    return {"status": "unhealthy", "message": "Database unreachable"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the database pool and builds the read repositories.
    """
    global _db_pool

    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}, network: {settings.network.value}")

    app.state.db_pool = None
    app.state.asset_repository = None
    app.state.market_repository = None
    app.state.orderbook_repository = None

    if settings.database_url:
        try:
            _db_pool = DatabasePool()
            await _db_pool.connect(settings.database_url)
            logger.info("Database connection established")

            app.state.db_pool = _db_pool
            app.state.asset_repository = AssetRepository(_db_pool)
            app.state.market_repository = MarketRepository(_db_pool)
            app.state.orderbook_repository = OrderbookRepository(_db_pool)
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            _db_pool = None
    else:
        logger.warning("No DATABASE_URL configured - API will return 503")

    health.register_health_check("database", _database_health)
    logger.info("Service startup complete")

    yield

    logger.info("Shutting down service...")
    if _db_pool:
        await _db_pool.close()
        _db_pool = None
    logger.info("Service shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Ledger Ticker",
    description="Asset catalog and market statistics for the ledger's decentralized exchange",
    version=settings.service_version,
    lifespan=lifespan,
)

# Public read-only data
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(v0.router, tags=["v0-api"])
app.include_router(metrics.router, tags=["metrics"])


@app.get("/")
async def root() -> dict:
    """Root endpoint - service info."""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.ledger_ticker.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "local",
    )
