"""
Health Check Endpoint

Provides service health status for load balancers and monitoring.
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..config import settings


router = APIRouter()


class ComponentHealth(BaseModel):
    """Health status of a component."""
    status: str  # "healthy", "degraded", "unhealthy"
    message: Optional[str] = None
    last_check: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str  # "healthy", "degraded", "unhealthy"
    service: str
    version: str
    environment: str
    network: str
    timestamp: str
    components: dict[str, ComponentHealth]


HealthCheck = Callable[[], Awaitable[dict]]

_component_checks: dict[str, HealthCheck] = {}

_SEVERITY = {"healthy": 0, "degraded": 1, "unhealthy": 2}


def register_health_check(name: str, check_fn: HealthCheck) -> None:
    """Register a component health check coroutine."""
    _component_checks[name] = check_fn


def clear_health_checks() -> None:
    _component_checks.clear()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Service health check endpoint.

    Overall status is the worst status among registered components.
    """
    now = datetime.now(timezone.utc).isoformat()
    components: dict[str, ComponentHealth] = {}
    overall_status = "healthy"

    for name, check_fn in _component_checks.items():
        try:
            result = await check_fn()
        except Exception as e:
            result = {"status": "unhealthy", "message": str(e)}

        status = result.get("status", "healthy")
        components[name] = ComponentHealth(
            status=status,
            message=result.get("message"),
            last_check=now,
        )
        if _SEVERITY.get(status, 2) > _SEVERITY[overall_status]:
            overall_status = status if status in _SEVERITY else "unhealthy"

    return HealthResponse(
        status=overall_status,
        service=settings.service_name,
        version=settings.service_version,
        environment=settings.environment,
        network=settings.network.value,
        timestamp=now,
        components=components,
    )


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness probe: the process is serving requests."""
    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness probe: the database is reachable."""
    pool = getattr(request.app.state, "db_pool", None)
    if pool is None or not await pool.check_health():
        raise HTTPException(status_code=503, detail="Database not ready")
    return {"status": "ready"}
