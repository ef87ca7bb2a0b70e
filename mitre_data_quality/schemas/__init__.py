"""Pydantic schemas for STIX input, stored documents and API payloads."""

from mitre_data_quality.schemas.data_quality import (
    AnalyticDocument,
    LogSourceReference,
    ScoreSet,
    ScoringAction,
    ScoringRunResult,
)
from mitre_data_quality.schemas.settings import ScoreDimension
from mitre_data_quality.schemas.taxonomy import (
    Tactic,
    TacticWithTechniques,
    Taxonomy,
    Technique,
)

__all__ = [
    "AnalyticDocument",
    "LogSourceReference",
    "ScoreSet",
    "ScoringAction",
    "ScoringRunResult",
    "ScoreDimension",
    "Tactic",
    "TacticWithTechniques",
    "Taxonomy",
    "Technique",
]
