"""Main FastAPI application."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from elasticsearch import AsyncElasticsearch
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mitre_data_quality.api.routes import health, matrix, scoring, settings as settings_routes
from mitre_data_quality.core.config import Settings, get_settings
from mitre_data_quality.core.elasticsearch import create_client
from mitre_data_quality.services.attack_data_service import AttackDataService
from mitre_data_quality.services.ecs_mapping_loader import ingest_ecs_mapping_if_empty
from mitre_data_quality.services.platform_settings_service import (
    PlatformSettingsService,
)
from mitre_data_quality.services.probe_gateway import ProbeGateway
from mitre_data_quality.services.scheduler_service import SchedulerService
from mitre_data_quality.services.scoring_orchestrator import ScoringOrchestrator
from mitre_data_quality.services.scoring_service import DataQualityScoringService
from mitre_data_quality.services.settings_cache import SettingsCache
from mitre_data_quality.services.taxonomy_service import TaxonomyService

API_PREFIX = "/api/mitre_data_quality"

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }

        if response.status_code >= 400:
            logger.warning("http_request", **log_data)
        else:
            logger.info("http_request", **log_data)

        return response


def init_app_state(
    app: FastAPI, settings: Settings, es_client: AsyncElasticsearch
) -> ScoringOrchestrator:
    """Wire the services used by the routes onto ``app.state``."""
    platform_settings = PlatformSettingsService(es_client, settings.settings_index_name)
    settings_cache = SettingsCache(
        platform_settings, ttl_seconds=settings.settings_cache_ttl_seconds
    )
    probe_gateway = ProbeGateway(es_client, settings.logs_index_pattern)
    scoring_service = DataQualityScoringService(
        es_client, probe_gateway, settings_cache, settings=settings
    )
    orchestrator = ScoringOrchestrator(scoring_service)

    app.state.settings = settings
    app.state.es_client = es_client
    app.state.taxonomy_service = TaxonomyService(settings.stix_data_path)
    app.state.platform_settings_service = platform_settings
    app.state.orchestrator = orchestrator
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings
    logger.info("starting_application", environment=settings.environment)

    es_client = create_client(settings)

    if settings.stix_download_on_startup:
        stix_path = await AttackDataService(settings).initialize()
        if stix_path is None:
            logger.error("stix_data_unavailable")

    try:
        await ingest_ecs_mapping_if_empty(
            es_client, settings.ecs_index_name, settings.ecs_mapping_path
        )
    except Exception as e:
        logger.error("ecs_mapping_ingest_failed", error=str(e))

    orchestrator = init_app_state(app, settings, es_client)

    scheduler: Optional[SchedulerService] = None
    if settings.scoring_schedule_enabled:
        scheduler = SchedulerService(
            orchestrator, settings.scoring_schedule_interval_minutes
        )
        try:
            await scheduler.start()
        except Exception as e:
            logger.error("scheduler_start_failed", error=str(e))

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if scheduler is not None:
        try:
            await scheduler.stop()
        except Exception as e:
            logger.error("scheduler_stop_failed", error=str(e))

    await es_client.close()


async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions server-side and return a generic error."""
    request_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "An internal error occurred. Please try again later.",
            "request_id": request_id,
        },
        headers={"X-Request-ID": request_id},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; services are wired during startup."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="MITRE ATT&CK matrix with data quality scoring of detection log sources",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router)
    app.include_router(matrix.router, prefix=API_PREFIX)
    app.include_router(scoring.router, prefix=API_PREFIX)
    app.include_router(settings_routes.router, prefix=API_PREFIX)

    return app


app = create_app()
