"""Data quality dimension calculators.

Five independent scores, each in [0, 5], computed per log source
reference from the probe result and configured platform scores:

- data field completeness: does the expected ECS field/value exist, scaled
  by mapping status and confidence
- timeliness: lag between ``@timestamp`` and ``event.ingested`` on the most
  recent matching record
- consistency: whether the field is standardized (present) at all
- device completeness: configured per-platform device coverage
- retention: configured per-platform retention coverage

The aggregate quality score is the mean of the five. None of the functions
here perform I/O.
"""

import random
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from mitre_data_quality.schemas.data_quality import (
    MAX_SCORE,
    ConsistencyDetails,
    ConsistencyScore,
    DataFieldCompletenessDetails,
    DataFieldCompletenessScore,
    DeviceCompletenessDetails,
    DeviceCompletenessScore,
    MappingStatus,
    RetentionDetails,
    RetentionScore,
    TimelinessDetails,
    TimelinessScore,
)

DEFAULT_RETENTION_SCORE = 5.0
DEFAULT_DEVICE_COMPLETENESS_SCORE = 2.0

STATUS_MULTIPLIERS = {
    "complete": 1.0,
    "partial": 0.5,
    "unmapped": 0.0,
}

CONFIDENCE_MULTIPLIERS = {
    "high": 1.0,
    "medium": 0.8,
    "low": 0.4,
    "": 0.0,
}

# Timeliness thresholds in minutes, checked in order: (upper bound, score)
TIMELINESS_BANDS = (
    (5, 5.0, "Delta < 5 minutes"),
    (15, 3.0, "Delta 5-15 minutes"),
    (60, 1.0, "Delta 15m-1h"),
)


def round_half_up(value: float, digits: int) -> float:
    """Round like a spreadsheet would: 0.05 -> 0.1, not to the even digit."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _lookup(document: dict, dotted_field: str) -> Any:
    """Read ``a.b`` from either ``{"a": {"b": ...}}`` or ``{"a.b": ...}``."""
    if dotted_field in document:
        return document[dotted_field]

    current: Any = document
    for part in dotted_field.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def calculate_data_field_completeness(
    status: str, confidence: str, field_exists: bool
) -> DataFieldCompletenessScore:
    """Score whether the expected field exists, scaled by mapping quality.

    Unrecognized status or confidence values use a zero multiplier.
    """
    details = DataFieldCompletenessDetails()

    if status == MappingStatus.UNMAPPED.value:
        details.reason = "Status is unmapped"
        return DataFieldCompletenessScore(score=0.0, details=details)

    details.status_multiplier = STATUS_MULTIPLIERS.get(status, 0.0)
    details.confidence_multiplier = CONFIDENCE_MULTIPLIERS.get(confidence, 0.0)

    if field_exists:
        details.base_score = MAX_SCORE
        details.reason = "Fields found in log store"
    else:
        details.base_score = 0.0
        details.reason = "Fields not found in log store"

    score = (
        details.base_score * details.status_multiplier * details.confidence_multiplier
    )
    return DataFieldCompletenessScore(score=round_half_up(score, 2), details=details)


def calculate_timeliness(last_doc: Optional[dict]) -> TimelinessScore:
    """Score ingestion lag of the most recent matching record."""
    details = TimelinessDetails()

    if not last_doc:
        details.reason = "No document available"
        return TimelinessScore(score=0.0, details=details)

    timestamp = _lookup(last_doc, "@timestamp")
    ingested = _lookup(last_doc, "event.ingested")

    if not ingested:
        details.reason = "event.ingested field not found"
        return TimelinessScore(score=0.0, details=details)

    if not timestamp:
        details.reason = "@timestamp field not found"
        return TimelinessScore(score=0.0, details=details)

    try:
        delta_seconds = (
            _parse_timestamp(ingested) - _parse_timestamp(timestamp)
        ).total_seconds()
    except (TypeError, ValueError) as e:
        details.reason = f"Error parsing timestamps: {e}"
        return TimelinessScore(score=0.0, details=details)

    delta_minutes = delta_seconds / 60
    details.last_doc_timestamp = str(timestamp)
    details.last_doc_ingested = str(ingested)
    details.delta_seconds = round_half_up(delta_seconds, 2)

    for upper_bound, score, label in TIMELINESS_BANDS:
        if delta_minutes < upper_bound:
            details.reason = f"{label} ({delta_minutes:.2f}m)"
            return TimelinessScore(score=score, details=details)

    details.reason = f"Delta > 1 hour ({delta_minutes:.2f}m)"
    return TimelinessScore(score=0.0, details=details)


def calculate_consistency(field_exists: bool) -> ConsistencyScore:
    """A field present in the log store is taken as ECS-standardized."""
    if field_exists:
        return ConsistencyScore(
            score=MAX_SCORE,
            details=ConsistencyDetails(reason="Fields standardized to ECS format"),
        )
    return ConsistencyScore(
        score=0.0,
        details=ConsistencyDetails(reason="Fields not found or not standardized"),
    )


def _coverage_percent(configured_score: float) -> int:
    return int(round_half_up(configured_score / MAX_SCORE * 100, 0))


def calculate_device_completeness(
    field_exists: bool,
    configured_score: float = DEFAULT_DEVICE_COMPLETENESS_SCORE,
) -> DeviceCompletenessScore:
    """Configured device coverage for the platform, or 0 without data."""
    if not field_exists:
        return DeviceCompletenessScore(
            score=0.0,
            details=DeviceCompletenessDetails(
                coverage_percent=0, reason="Field not found - 0% coverage"
            ),
        )

    if configured_score == DEFAULT_DEVICE_COMPLETENESS_SCORE:
        reason = "Default score - adjust in settings based on actual device coverage"
    else:
        reason = "Configured device completeness score for platform"

    return DeviceCompletenessScore(
        score=configured_score,
        details=DeviceCompletenessDetails(
            coverage_percent=_coverage_percent(configured_score), reason=reason
        ),
    )


def calculate_retention(
    field_exists: bool,
    configured_score: float = DEFAULT_RETENTION_SCORE,
) -> RetentionScore:
    """Configured retention coverage for the platform, or 0 without data."""
    if not field_exists:
        return RetentionScore(
            score=0.0,
            details=RetentionDetails(
                retention_percent=0, reason="Field not found - no data retention"
            ),
        )

    if configured_score == DEFAULT_RETENTION_SCORE:
        reason = "Default score - adjust in settings if retention limitations exist"
    else:
        reason = "Configured retention score for platform"

    return RetentionScore(
        score=configured_score,
        details=RetentionDetails(
            retention_percent=_coverage_percent(configured_score), reason=reason
        ),
    )


def calculate_quality_score(*dimension_scores: float) -> float:
    """Mean of the dimension scores, rounded to one decimal."""
    if not dimension_scores:
        return 0.0
    return round_half_up(sum(dimension_scores) / len(dimension_scores), 1)


def calculate_next_execution(
    now: datetime,
    refresh_interval: timedelta,
    jitter_min_seconds: int = 60,
    jitter_max_seconds: int = 360,
    rng: Optional[random.Random] = None,
) -> datetime:
    """When a score becomes due again.

    A uniformly drawn jitter spreads re-evaluation of analytics scored in
    the same pass.
    """
    jitter = (rng or random).randint(jitter_min_seconds, jitter_max_seconds)
    return now + refresh_interval + timedelta(seconds=jitter)
