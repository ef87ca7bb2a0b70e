"""Service layer for business logic."""

from mitre_data_quality.services.scoring_orchestrator import ScoringOrchestrator
from mitre_data_quality.services.scoring_service import DataQualityScoringService
from mitre_data_quality.services.taxonomy_service import TaxonomyService

__all__ = ["DataQualityScoringService", "ScoringOrchestrator", "TaxonomyService"]
