"""
Ledger Ticker V0 API Endpoints

Endpoints:
- GET /v0/assets - Valid asset catalog
- GET /v0/markets - 24h market statistics, optionally for one BASE_COUNTER pair
- GET /v0/orderbook - Stored orderbook stats for one direction of a pair
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ...core.errors import InvalidPairNameError
from ...core.types import MarketStats, OrderbookStats


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v0", tags=["v0"])


# =============================================================================
# Response Models
# =============================================================================

class AssetResponse(BaseModel):
    """One asset of the catalog."""

    code: str
    issuer: str
    type: str
    num_accounts: int
    amount: str = Field(..., description="Circulating amount (decimal string)")
    auth_required: bool = False
    auth_revocable: bool = False
    domain_controlled: bool = False
    anchor_asset: str = ""
    anchor_asset_type: str = ""
    display_decimals: int = 0
    name: str = ""
    desc: str = ""
    issuer_name: str = ""
    issuer_url: str = ""
    last_valid: Optional[datetime] = None


class AssetsResponse(BaseModel):
    """Response for /v0/assets endpoint."""

    assets: list[AssetResponse]
    count: int
    timestamp: str


class MarketsResponse(BaseModel):
    """Response for /v0/markets endpoint."""

    pair: Optional[str] = Field(None, description="Pair filter applied (null if all pairs)")
    markets: list[MarketStats]
    count: int
    timestamp: str


# =============================================================================
# Dependencies
# =============================================================================

def _require_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return value


def get_asset_repository(request: Request):
    """Get asset repository from app state."""
    return _require_state(request, "asset_repository")


def get_market_repository(request: Request):
    """Get market repository from app state."""
    return _require_state(request, "market_repository")


def get_orderbook_repository(request: Request):
    """Get orderbook repository from app state."""
    return _require_state(request, "orderbook_repository")


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/assets", response_model=AssetsResponse)
async def get_assets(repository=Depends(get_asset_repository)):
    """Valid assets, most held first."""
    try:
        rows = await repository.get_valid_assets()
    except Exception as e:
        logger.error(f"Failed to query assets: {e}")
        raise HTTPException(status_code=500, detail=f"Database error: {e}")

    assets = [
        AssetResponse(
            code=row["code"],
            issuer=row["issuer_account"],
            type=row["type"],
            num_accounts=row["num_accounts"],
            amount=str(row["amount"]),
            auth_required=row["auth_required"],
            auth_revocable=row["auth_revocable"],
            domain_controlled=row["asset_controlled_by_domain"],
            anchor_asset=row["anchor_asset_code"],
            anchor_asset_type=row["anchor_asset_type"],
            display_decimals=row["display_decimals"],
            name=row["name"],
            desc=row["description"],
            issuer_name=row["issuer_name"],
            issuer_url=row["issuer_url"],
            last_valid=row["last_valid"],
        )
        for row in rows
    ]

    return AssetsResponse(
        assets=assets,
        count=len(assets),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/markets", response_model=MarketsResponse)
async def get_markets(
    pair: Optional[str] = Query(None, description="Trade pair name, e.g. BTC_XLM"),
    hours: int = Query(24, ge=1, le=168, description="Aggregation window in hours"),
    repository=Depends(get_market_repository),
):
    """Aggregated market statistics."""
    try:
        markets = await repository.get_market_stats(pair_name=pair, hours=hours)
    except InvalidPairNameError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to query markets: {e}")
        raise HTTPException(status_code=500, detail=f"Database error: {e}")

    return MarketsResponse(
        pair=pair,
        markets=markets,
        count=len(markets),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/orderbook", response_model=OrderbookStats)
async def get_orderbook(
    base_code: str = Query(..., description="Base asset code (XLM for native)"),
    counter_code: str = Query(..., description="Counter asset code (XLM for native)"),
    base_issuer: str = Query("native", description="Base asset issuer"),
    counter_issuer: str = Query("native", description="Counter asset issuer"),
    repository=Depends(get_orderbook_repository),
):
    """Latest stored orderbook statistics selling base for counter."""
    try:
        stats = await repository.get_pair(base_code, base_issuer, counter_code, counter_issuer)
    except Exception as e:
        logger.error(f"Failed to query orderbook: {e}")
        raise HTTPException(status_code=500, detail=f"Database error: {e}")

    if stats is None:
        raise HTTPException(
            status_code=404,
            detail=f"No orderbook stats for {base_code}:{base_issuer} / {counter_code}:{counter_issuer}",
        )
    return stats
