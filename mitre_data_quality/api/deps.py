"""API dependencies."""

from typing import Any, Optional

from elasticsearch import AsyncElasticsearch
from fastapi import HTTPException, Request, status

from mitre_data_quality.services.platform_settings_service import (
    PlatformSettingsService,
)
from mitre_data_quality.services.results_service import ResultsService
from mitre_data_quality.services.scoring_orchestrator import ScoringOrchestrator
from mitre_data_quality.services.taxonomy_service import TaxonomyService


def _require_state(request: Request, name: str) -> Any:
    """A service wired at startup, or 503 while the app is still starting."""
    service: Optional[Any] = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not initialized yet",
        )
    return service


def get_request_es_client(request: Request) -> AsyncElasticsearch:
    """Client that queries with the caller's credentials when given.

    The incoming ``Authorization`` header is forwarded as-is; without it
    the service client is returned.
    """
    client: AsyncElasticsearch = _require_state(request, "es_client")
    authorization = request.headers.get("Authorization")
    if not authorization:
        return client
    return client.options(headers={"Authorization": authorization})


def get_taxonomy_service(request: Request) -> TaxonomyService:
    return _require_state(request, "taxonomy_service")


def get_results_service(request: Request) -> ResultsService:
    return ResultsService(get_request_es_client(request), request.app.state.settings)


def get_platform_settings_service(request: Request) -> PlatformSettingsService:
    return _require_state(request, "platform_settings_service")


def get_orchestrator(request: Request) -> ScoringOrchestrator:
    return _require_state(request, "orchestrator")
