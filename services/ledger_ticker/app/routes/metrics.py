"""
Prometheus Metrics Endpoint

Exposes /metrics endpoint in Prometheus text format.
"""

from fastapi import APIRouter, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from ...core.metrics import REGISTRY, set_service_info
from ..config import settings


router = APIRouter()


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Metrics exposed:
    - ticker_assets_processed_total{outcome}
    - ticker_catalog_size
    - ticker_pipeline_duration_seconds
    - ticker_ledger_pages_total{endpoint}
    - ticker_ledger_retries_total{operation}
    - ticker_trades_ingested_total{source}
    - ticker_orderbooks_refreshed_total{status}
    - ticker_db_writes_total{table, status}
    - ticker_db_write_latency_seconds{table}
    - ticker_service_info{version, environment}
    """
    set_service_info(settings.service_version, settings.environment)

    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
