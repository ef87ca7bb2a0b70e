"""Health check endpoints."""

import structlog
from fastapi import APIRouter, Request

from mitre_data_quality.core.config import get_settings

router = APIRouter(tags=["health"])
logger = structlog.get_logger()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": "healthy", "version": get_settings().app_version}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check including Elasticsearch connectivity."""
    try:
        reachable = bool(await request.app.state.es_client.ping())
    except Exception as e:
        # Log full error server-side but return generic status
        logger.error("elasticsearch_health_check_failed", error=str(e))
        reachable = False

    return {
        "status": "ready" if reachable else "not_ready",
        "elasticsearch": "connected" if reachable else "unavailable",
        "version": get_settings().app_version,
    }
