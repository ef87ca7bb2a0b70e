"""Per-platform score settings endpoints."""

from fastapi import APIRouter, Depends

from mitre_data_quality.analyzers.quality_dimensions import (
    DEFAULT_DEVICE_COMPLETENESS_SCORE,
    DEFAULT_RETENTION_SCORE,
)
from mitre_data_quality.api.deps import get_orchestrator, get_platform_settings_service
from mitre_data_quality.api.routes.matrix import MessageResponse
from mitre_data_quality.schemas.settings import (
    DeviceCompletenessSettingsResponse,
    PlatformScoreUpdate,
    PlatformScoreUpdateResponse,
    RetentionSettingsResponse,
    ScoreDimension,
)
from mitre_data_quality.services.platform_settings_service import (
    PlatformSettingsService,
)
from mitre_data_quality.services.scoring_orchestrator import ScoringOrchestrator

router = APIRouter(prefix="/settings", tags=["settings"])


@router.post("/invalidate_cache", response_model=MessageResponse)
async def invalidate_settings_cache(
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
) -> MessageResponse:
    orchestrator.invalidate_settings_cache()
    return MessageResponse(message="Settings cache invalidated")


@router.get("/retention", response_model=RetentionSettingsResponse)
async def get_retention_settings(
    store: PlatformSettingsService = Depends(get_platform_settings_service),
) -> RetentionSettingsResponse:
    return RetentionSettingsResponse(
        retention_scores=await store.get_scores(ScoreDimension.RETENTION),
        default_score=DEFAULT_RETENTION_SCORE,
    )


@router.post("/retention", response_model=PlatformScoreUpdateResponse)
async def set_retention_score(
    body: PlatformScoreUpdate,
    store: PlatformSettingsService = Depends(get_platform_settings_service),
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
) -> PlatformScoreUpdateResponse:
    await store.set_score(ScoreDimension.RETENTION, body.platform, body.score)
    orchestrator.invalidate_settings_cache()
    return PlatformScoreUpdateResponse(
        message="Retention score saved", platform=body.platform, score=body.score
    )


@router.get("/device_completeness", response_model=DeviceCompletenessSettingsResponse)
async def get_device_completeness_settings(
    store: PlatformSettingsService = Depends(get_platform_settings_service),
) -> DeviceCompletenessSettingsResponse:
    return DeviceCompletenessSettingsResponse(
        device_completeness_scores=await store.get_scores(
            ScoreDimension.DEVICE_COMPLETENESS
        ),
        default_score=DEFAULT_DEVICE_COMPLETENESS_SCORE,
    )


@router.post("/device_completeness", response_model=PlatformScoreUpdateResponse)
async def set_device_completeness_score(
    body: PlatformScoreUpdate,
    store: PlatformSettingsService = Depends(get_platform_settings_service),
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
) -> PlatformScoreUpdateResponse:
    await store.set_score(
        ScoreDimension.DEVICE_COMPLETENESS, body.platform, body.score
    )
    orchestrator.invalidate_settings_cache()
    return PlatformScoreUpdateResponse(
        message="Device completeness score saved",
        platform=body.platform,
        score=body.score,
    )
