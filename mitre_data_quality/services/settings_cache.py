"""Time-boxed cache of per-platform configured scores."""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from mitre_data_quality.analyzers.quality_dimensions import (
    DEFAULT_DEVICE_COMPLETENESS_SCORE,
    DEFAULT_RETENTION_SCORE,
    round_half_up,
)
from mitre_data_quality.schemas.data_quality import MAX_SCORE
from mitre_data_quality.schemas.settings import ScoreDimension
from mitre_data_quality.services.platform_settings_service import (
    PlatformSettingsService,
)

logger = structlog.get_logger()

DIMENSION_DEFAULTS = {
    ScoreDimension.RETENTION: DEFAULT_RETENTION_SCORE,
    ScoreDimension.DEVICE_COMPLETENESS: DEFAULT_DEVICE_COMPLETENESS_SCORE,
}


@dataclass
class CachedScores:
    value: dict[str, float]
    fetched_at: float

    def is_stale(self, now: float, ttl_seconds: float) -> bool:
        return now - self.fetched_at >= ttl_seconds


class SettingsCache:
    """Per-dimension platform -> score mapping, refetched after ``ttl_seconds``.

    Platforms without a configured value get the dimension default. The
    "average" value (no platform given) is the plain mean of all configured
    platform scores, or the default when none are configured.
    """

    def __init__(
        self,
        store: PlatformSettingsService,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[ScoreDimension, CachedScores] = {}
        self._generation = 0
        self._lock = asyncio.Lock()
        self.logger = logger.bind(service="SettingsCache")

    async def get_scores(self, dimension: ScoreDimension) -> dict[str, float]:
        """Valid configured scores for a dimension, fetching when stale."""
        entry = self._entries.get(dimension)
        if entry and not entry.is_stale(self._clock(), self.ttl_seconds):
            return entry.value

        async with self._lock:
            # Another task may have refreshed while we waited
            entry = self._entries.get(dimension)
            if entry and not entry.is_stale(self._clock(), self.ttl_seconds):
                return entry.value

            generation = self._generation
            value = await self._fetch(dimension)
            # An invalidation during the fetch means the value may predate a write
            if generation == self._generation:
                self._entries[dimension] = CachedScores(
                    value=value, fetched_at=self._clock()
                )
            return value

    async def get_score(
        self, dimension: ScoreDimension, platform: Optional[str] = None
    ) -> float:
        scores = await self.get_scores(dimension)
        default = DIMENSION_DEFAULTS[dimension]

        if platform:
            return scores.get(platform, default)

        if not scores:
            return default

        return round_half_up(sum(scores.values()) / len(scores), 1)

    def invalidate(self) -> None:
        """Drop all entries so the next read refetches."""
        self._generation += 1
        self._entries.clear()
        self.logger.debug("settings_cache_invalidated")

    async def _fetch(self, dimension: ScoreDimension) -> dict[str, float]:
        try:
            raw = await self.store.get_scores(dimension)
        except Exception as e:
            self.logger.warning(
                "settings_fetch_failed", dimension=dimension.value, error=str(e)
            )
            return {}

        scores: dict[str, float] = {}
        for platform, value in raw.items():
            try:
                score = float(value)
            except (TypeError, ValueError):
                score = math.nan

            if not 0 <= score <= MAX_SCORE:
                self.logger.warning(
                    "settings_value_ignored",
                    dimension=dimension.value,
                    platform=platform,
                    value=value,
                )
                continue
            scores[platform] = score

        return scores
