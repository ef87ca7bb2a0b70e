"""Platform score settings schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class ScoreDimension(str, Enum):
    """Dimensions whose score is configured per platform."""

    RETENTION = "retention"
    DEVICE_COMPLETENESS = "device_completeness"

    @property
    def document_id(self) -> str:
        """Id of the settings document holding this dimension's scores."""
        return f"{self.value}_scores"


class PlatformScoreUpdate(BaseModel):
    """Request body for setting one platform's score."""

    platform: str = Field(min_length=1)
    score: float = Field(ge=0, le=5)


class PlatformScoreUpdateResponse(BaseModel):
    message: str
    platform: str
    score: float


class RetentionSettingsResponse(BaseModel):
    retention_scores: dict[str, float]
    default_score: float


class DeviceCompletenessSettingsResponse(BaseModel):
    device_completeness_scores: dict[str, float]
    default_score: float
