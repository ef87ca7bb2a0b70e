"""Data quality score endpoints."""

import structlog
from elasticsearch import AsyncElasticsearch
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field

from mitre_data_quality.api.deps import (
    get_orchestrator,
    get_request_es_client,
    get_results_service,
)
from mitre_data_quality.schemas.data_quality import ScoringAction
from mitre_data_quality.services.results_service import ResultsService
from mitre_data_quality.services.scoring_orchestrator import ScoringOrchestrator

router = APIRouter(tags=["scoring"])
logger = structlog.get_logger()


class AllScoresResponse(BaseModel):
    scores: dict[str, float] = Field(default_factory=dict)
    next_executions: dict[str, str] = Field(default_factory=dict)


class TriggerScoringResponse(BaseModel):
    action: ScoringAction
    count: int
    message: str


class QualityCheckResponse(BaseModel):
    message: str
    status: str


TRIGGER_MESSAGES = {
    ScoringAction.INIT: "Initial scoring completed. Refresh page to see results.",
    ScoringAction.UPDATE: "Updated {count} analytics that were due for recalculation.",
    ScoringAction.NONE: "No analytics need recalculation at this time.",
}


@router.get("/all_scores", response_model=AllScoresResponse)
async def get_all_scores(
    results_service: ResultsService = Depends(get_results_service),
) -> AllScoresResponse:
    """Mean quality score and earliest next execution per analytic."""
    summary = await results_service.get_all_scores()
    return AllScoresResponse(
        scores=summary.scores, next_executions=summary.next_executions
    )


@router.get("/results/{analytic_id}")
async def get_result(
    analytic_id: str,
    results_service: ResultsService = Depends(get_results_service),
) -> dict:
    result = await results_service.get_result(analytic_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Results not found for analytic: {analytic_id}",
        )
    return result


@router.get("/trigger_scoring", response_model=TriggerScoringResponse)
async def trigger_scoring(
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
    probe_client: AsyncElasticsearch = Depends(get_request_es_client),
) -> TriggerScoringResponse:
    """Run an incremental pass, probing logs with the caller's credentials."""
    try:
        result = await orchestrator.run_incremental_pass(probe_client)
    except Exception as e:
        logger.error("trigger_scoring_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run scoring",
        )

    return TriggerScoringResponse(
        action=result.action,
        count=result.count,
        message=TRIGGER_MESSAGES[result.action].format(count=result.count),
    )


async def _run_full_pass(
    orchestrator: ScoringOrchestrator, probe_client: AsyncElasticsearch
) -> None:
    try:
        await orchestrator.run_full_pass(probe_client)
    except Exception as e:
        logger.exception("force_quality_check_failed", error=str(e))


@router.post(
    "/force_quality_check",
    response_model=QualityCheckResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def force_quality_check(
    background_tasks: BackgroundTasks,
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
    probe_client: AsyncElasticsearch = Depends(get_request_es_client),
) -> QualityCheckResponse:
    """Start a full pass in the background and return immediately."""
    background_tasks.add_task(_run_full_pass, orchestrator, probe_client)
    return QualityCheckResponse(message="Full data quality check started", status="running")
