"""Data quality documents stored in the ECS mapping and results indices."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_SCORE = 5.0


class MappingStatus(str, Enum):
    """How completely a log source is mapped to ECS."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    UNMAPPED = "unmapped"


class MappingConfidence(str, Enum):
    """Confidence in a log source's ECS mapping."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNSET = ""


class ScoringAction(str, Enum):
    """What a scoring pass ended up doing."""

    INIT = "init"  # full pass
    UPDATE = "update"  # only analytics past next_execution
    NONE = "none"  # nothing due, or another pass was running


# Score dimension details


class DataFieldCompletenessDetails(BaseModel):
    base_score: float = 0.0
    status_multiplier: float = 0.0
    confidence_multiplier: float = 0.0
    reason: str = ""


class TimelinessDetails(BaseModel):
    last_doc_timestamp: Optional[str] = None
    last_doc_ingested: Optional[str] = None
    delta_seconds: Optional[float] = None
    reason: str = ""


class ConsistencyDetails(BaseModel):
    reason: str = ""


class DeviceCompletenessDetails(BaseModel):
    coverage_percent: int = 0
    reason: str = ""


class RetentionDetails(BaseModel):
    retention_percent: int = 0
    reason: str = ""


class DataFieldCompletenessScore(BaseModel):
    score: float = Field(ge=0, le=MAX_SCORE)
    details: DataFieldCompletenessDetails


class TimelinessScore(BaseModel):
    score: float = Field(ge=0, le=MAX_SCORE)
    details: TimelinessDetails


class ConsistencyScore(BaseModel):
    score: float = Field(ge=0, le=MAX_SCORE)
    details: ConsistencyDetails


class DeviceCompletenessScore(BaseModel):
    score: float = Field(ge=0, le=MAX_SCORE)
    details: DeviceCompletenessDetails


class RetentionScore(BaseModel):
    score: float = Field(ge=0, le=MAX_SCORE)
    details: RetentionDetails


class ScoreSet(BaseModel):
    """All five dimension scores for one log source reference."""

    next_execution: datetime
    quality_score: float = Field(ge=0, le=MAX_SCORE)
    data_field_completeness: DataFieldCompletenessScore
    timeliness: TimelinessScore
    consistency: ConsistencyScore
    device_completeness: DeviceCompletenessScore
    retention: RetentionScore


# ECS mapping documents


class EcsMapping(BaseModel):
    """Field name/value (and optional channel) a log record must carry."""

    model_config = ConfigDict(extra="ignore")

    name_field: str = ""
    name_value: str = ""
    channel_field: str = ""
    channel_value: str = ""
    scores: Optional[ScoreSet] = None


class LogSourceMapping(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ecs: EcsMapping = Field(default_factory=EcsMapping)
    # Kept as free strings: unknown values score with a zero multiplier
    status: str = MappingStatus.UNMAPPED.value
    confidence: str = MappingConfidence.UNSET.value
    notes: str = ""
    verified: bool = False


class LogSourceReference(BaseModel):
    """Log source an analytic expects to find in the log store."""

    model_config = ConfigDict(extra="ignore")

    x_mitre_data_component_ref: str = ""
    data_component_name: str = ""
    name: str = ""
    channel: str = ""
    mapping: LogSourceMapping = Field(default_factory=LogSourceMapping)

    def without_scores(self) -> "LogSourceReference":
        """Copy with any previous score set removed."""
        ecs = self.mapping.ecs.model_copy(update={"scores": None})
        mapping = self.mapping.model_copy(update={"ecs": ecs})
        return self.model_copy(update={"mapping": mapping})


class AnalyticDocument(BaseModel):
    """Analytic with its log source references; the unit of scoring."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str = ""
    x_mitre_platforms: list[str] = Field(default_factory=list)
    x_mitre_log_source_references: list[LogSourceReference] = Field(
        default_factory=list
    )

    def to_document(self) -> dict:
        """Serialize for indexing."""
        return self.model_dump(mode="json", exclude_none=True)


class ScoringRunResult(BaseModel):
    """Outcome of a scoring pass. ``count`` is -1 for a full pass."""

    action: ScoringAction
    count: int

    @classmethod
    def noop(cls) -> "ScoringRunResult":
        return cls(action=ScoringAction.NONE, count=0)

    @classmethod
    def full(cls) -> "ScoringRunResult":
        return cls(action=ScoringAction.INIT, count=-1)
