"""Platform settings service for per-platform configured scores.

Each configurable dimension is stored as a single document in the
settings index::

    {"scores": {"Windows": 4.0, "Linux": 3.5}, "updated_at": "..."}

A missing index or document is a normal state and reads as no
configured platforms.
"""

from datetime import datetime, timezone

import structlog
from elasticsearch import AsyncElasticsearch, NotFoundError

from mitre_data_quality.schemas.settings import ScoreDimension

logger = structlog.get_logger()

SETTINGS_INDEX_SETTINGS = {"number_of_shards": 1, "number_of_replicas": 0}
SETTINGS_INDEX_MAPPINGS = {
    "properties": {
        "scores": {"type": "object", "enabled": True},
        "updated_at": {"type": "date"},
    }
}


class PlatformSettingsService:
    """Reads and writes per-platform score settings."""

    def __init__(self, client: AsyncElasticsearch, index: str):
        self.client = client
        self.index = index
        self.logger = logger.bind(service="PlatformSettingsService")

    async def get_scores(self, dimension: ScoreDimension) -> dict[str, float]:
        """Configured platform -> score mapping for a dimension."""
        if not await self.client.indices.exists(index=self.index):
            return {}

        try:
            result = await self.client.get(index=self.index, id=dimension.document_id)
        except NotFoundError:
            return {}

        source = result.get("_source") or {}
        return dict(source.get("scores") or {})

    async def set_score(
        self, dimension: ScoreDimension, platform: str, score: float
    ) -> dict[str, float]:
        """Set one platform's score, keeping the other platforms' values.

        Returns:
            The full mapping after the update
        """
        if not platform:
            raise ValueError("platform must not be empty")
        if not 0 <= score <= 5:
            raise ValueError(f"score must be between 0 and 5, got {score}")

        await self._ensure_index()

        scores = await self.get_scores(dimension)
        scores[platform] = score

        await self.client.index(
            index=self.index,
            id=dimension.document_id,
            document={
                "scores": scores,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            refresh=True,
        )

        self.logger.info(
            "platform_score_saved",
            dimension=dimension.value,
            platform=platform,
            score=score,
        )
        return scores

    async def _ensure_index(self) -> None:
        if await self.client.indices.exists(index=self.index):
            return

        await self.client.indices.create(
            index=self.index,
            settings=SETTINGS_INDEX_SETTINGS,
            mappings=SETTINGS_INDEX_MAPPINGS,
        )
        self.logger.info("settings_index_created", index=self.index)
