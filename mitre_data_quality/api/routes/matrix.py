"""ATT&CK matrix and ECS mapping endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from mitre_data_quality.api.deps import get_results_service, get_taxonomy_service
from mitre_data_quality.schemas.taxonomy import Taxonomy
from mitre_data_quality.services.results_service import ResultsService
from mitre_data_quality.services.taxonomy_service import TaxonomyService

router = APIRouter(tags=["matrix"])


class EcsMappingStatusResponse(BaseModel):
    available: bool
    count: int


class MessageResponse(BaseModel):
    message: str


@router.get("/matrix", response_model=Taxonomy)
async def get_matrix(
    taxonomy_service: TaxonomyService = Depends(get_taxonomy_service),
) -> Taxonomy:
    """Tactic columns with their techniques and the available platforms."""
    return await taxonomy_service.get_taxonomy_async()


@router.post("/matrix/clear_cache", response_model=MessageResponse)
async def clear_matrix_cache(
    taxonomy_service: TaxonomyService = Depends(get_taxonomy_service),
) -> MessageResponse:
    await taxonomy_service.clear_cache_async()
    return MessageResponse(message="Matrix cache cleared")


@router.get("/ecs_mapping/{analytic_id}")
async def get_ecs_mapping(
    analytic_id: str,
    results_service: ResultsService = Depends(get_results_service),
) -> dict:
    mapping = await results_service.get_ecs_mapping(analytic_id)
    if mapping is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"ECS mapping not found for analytic: {analytic_id}",
        )
    return mapping


@router.get("/ecs_mapping_status", response_model=EcsMappingStatusResponse)
async def get_ecs_mapping_status(
    results_service: ResultsService = Depends(get_results_service),
) -> EcsMappingStatusResponse:
    return EcsMappingStatusResponse(**await results_service.ecs_mapping_status())
