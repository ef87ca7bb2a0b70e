"""Data quality scoring service.

Scores every log source reference of an analytic against the log store and
persists the scored analytic in the results index, keyed by analytic id.
"""

import random
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from elasticsearch import AsyncElasticsearch
from pydantic import ValidationError

from mitre_data_quality.analyzers.quality_dimensions import (
    calculate_consistency,
    calculate_data_field_completeness,
    calculate_device_completeness,
    calculate_next_execution,
    calculate_quality_score,
    calculate_retention,
    calculate_timeliness,
)
from mitre_data_quality.core.config import Settings, get_settings
from mitre_data_quality.core.elasticsearch import scrolled_search
from mitre_data_quality.schemas.data_quality import (
    AnalyticDocument,
    LogSourceReference,
    MappingStatus,
    ScoreSet,
)
from mitre_data_quality.schemas.settings import ScoreDimension
from mitre_data_quality.services.probe_gateway import ProbeGateway, ProbeResult
from mitre_data_quality.services.settings_cache import SettingsCache

logger = structlog.get_logger()

PROGRESS_LOG_EVERY = 10


@dataclass
class ScoringStats:
    """Counters for one full pass over the ECS mapping index."""

    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def scoring_platform(analytic: AnalyticDocument) -> Optional[str]:
    """Platform whose configured scores apply to an analytic.

    Only an analytic bound to exactly one platform has an unambiguous
    platform; otherwise the average of configured platforms is used.
    """
    if len(analytic.x_mitre_platforms) == 1:
        return analytic.x_mitre_platforms[0]
    return None


def analytic_needs_recalculation(
    analytic: AnalyticDocument, now: Optional[datetime] = None
) -> bool:
    """True when any log source is unscored or past its ``next_execution``."""
    now = now or datetime.now(timezone.utc)

    for ref in analytic.x_mitre_log_source_references:
        scores = ref.mapping.ecs.scores
        if scores is None:
            return True

        next_execution = scores.next_execution
        if next_execution.tzinfo is None:
            next_execution = next_execution.replace(tzinfo=timezone.utc)
        if now >= next_execution:
            return True

    return False


class DataQualityScoringService:
    """Computes and stores data quality scores for analytics."""

    def __init__(
        self,
        client: AsyncElasticsearch,
        probe_gateway: ProbeGateway,
        settings_cache: SettingsCache,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.probe_gateway = probe_gateway
        self.settings_cache = settings_cache
        self.settings = settings or get_settings()
        self.rng = rng
        self.logger = logger.bind(service="DataQualityScoringService")

    @property
    def ecs_index(self) -> str:
        return self.settings.ecs_index_name

    @property
    def results_index(self) -> str:
        return self.settings.results_index_name

    def _next_execution(self, now: datetime) -> datetime:
        return calculate_next_execution(
            now,
            timedelta(seconds=self.settings.score_refresh_interval_seconds),
            self.settings.score_jitter_min_seconds,
            self.settings.score_jitter_max_seconds,
            rng=self.rng,
        )

    async def calculate_scores_for_log_source(
        self, ref: LogSourceReference, platform: Optional[str] = None
    ) -> ScoreSet:
        """Probe the log store for one reference and score all dimensions."""
        mapping = ref.mapping

        # Unmapped sources score zero without touching the log store
        if mapping.status == MappingStatus.UNMAPPED.value:
            probe = ProbeResult.not_found()
        else:
            probe = await self.probe_gateway.probe(mapping)

        completeness = calculate_data_field_completeness(
            mapping.status, mapping.confidence, probe.exists
        )
        field_exists = completeness.details.base_score > 0

        timeliness = calculate_timeliness(probe.last_doc)
        consistency = calculate_consistency(field_exists)
        device_completeness = calculate_device_completeness(
            field_exists,
            await self.settings_cache.get_score(
                ScoreDimension.DEVICE_COMPLETENESS, platform
            ),
        )
        retention = calculate_retention(
            field_exists,
            await self.settings_cache.get_score(ScoreDimension.RETENTION, platform),
        )

        quality_score = calculate_quality_score(
            completeness.score,
            timeliness.score,
            consistency.score,
            device_completeness.score,
            retention.score,
        )

        self.logger.debug(
            "log_source_scored",
            log_source=ref.name,
            name_field=mapping.ecs.name_field,
            status=mapping.status,
            quality_score=quality_score,
        )

        return ScoreSet(
            next_execution=self._next_execution(datetime.now(timezone.utc)),
            quality_score=quality_score,
            data_field_completeness=completeness,
            timeliness=timeliness,
            consistency=consistency,
            device_completeness=device_completeness,
            retention=retention,
        )

    async def process_analytic(
        self, analytic: AnalyticDocument, platform: Optional[str] = None
    ) -> AnalyticDocument:
        """Score every log source reference of an analytic.

        Previous scores are discarded before re-scoring.
        """
        platform = platform or scoring_platform(analytic)

        scored_refs = []
        for ref in analytic.x_mitre_log_source_references:
            ref = ref.without_scores()
            scores = await self.calculate_scores_for_log_source(ref, platform)
            ecs = ref.mapping.ecs.model_copy(update={"scores": scores})
            mapping = ref.mapping.model_copy(update={"ecs": ecs})
            scored_refs.append(ref.model_copy(update={"mapping": mapping}))

        return analytic.model_copy(
            update={"x_mitre_log_source_references": scored_refs}
        )

    async def save_result(self, analytic: AnalyticDocument) -> None:
        """Replace the stored result for an analytic (not yet visible)."""
        await self.client.index(
            index=self.results_index,
            id=analytic.id,
            document=analytic.to_document(),
            refresh=False,
        )

    async def refresh_results(self) -> None:
        """Make written results visible to searches."""
        await self.client.indices.refresh(index=self.results_index)

    async def results_available(self) -> bool:
        """Whether the results index exists and holds any document."""
        if not await self.client.indices.exists(index=self.results_index):
            return False

        response = await self.client.count(index=self.results_index)
        return response["count"] > 0

    async def process_all_analytics(self) -> ScoringStats:
        """Score every analytic in the ECS mapping index.

        Failures scoring a single analytic are logged and skipped. Failures
        reading the ECS index or refreshing the results index propagate.
        """
        stats = ScoringStats()

        if not await self.client.indices.exists(index=self.ecs_index):
            self.logger.warning("ecs_index_missing", index=self.ecs_index)
            return stats

        self.logger.info("full_scoring_started", index=self.ecs_index)

        async with scrolled_search(
            self.client,
            self.ecs_index,
            page_size=self.settings.scroll_page_size,
            keep_alive=self.settings.scroll_keep_alive,
        ) as cursor:
            async for hit in cursor:
                stats.processed += 1
                await self._score_and_save(hit, stats)

                if stats.processed % PROGRESS_LOG_EVERY == 0:
                    self.logger.debug("full_scoring_progress", **stats.to_dict())

        await self.refresh_results()

        self.logger.info("full_scoring_completed", **stats.to_dict())
        return stats

    async def _score_and_save(self, hit: dict, stats: ScoringStats) -> None:
        source = hit.get("_source")
        if not source:
            self.logger.warning("ecs_hit_without_source", doc_id=hit.get("_id"))
            stats.skipped += 1
            return

        try:
            analytic = AnalyticDocument.model_validate(source)
        except ValidationError as e:
            self.logger.warning(
                "ecs_document_invalid", doc_id=hit.get("_id"), error=str(e)
            )
            stats.skipped += 1
            return

        if not analytic.x_mitre_log_source_references:
            self.logger.warning(
                "analytic_without_log_sources",
                analytic_id=analytic.id,
                analytic_name=analytic.name,
            )
            stats.skipped += 1
            return

        try:
            scored = await self.process_analytic(analytic)
            await self.save_result(scored)
        except Exception as e:
            self.logger.error(
                "analytic_scoring_failed",
                analytic_id=analytic.id,
                analytic_name=analytic.name,
                error=str(e),
            )
            stats.failed += 1
            return

        stats.updated += 1

    async def get_analytics_needing_recalculation(
        self, now: Optional[datetime] = None
    ) -> list[AnalyticDocument]:
        """Stored results with at least one log source due for re-scoring."""
        now = now or datetime.now(timezone.utc)
        due: list[AnalyticDocument] = []

        async with scrolled_search(
            self.client,
            self.results_index,
            page_size=self.settings.scroll_page_size,
            keep_alive=self.settings.scroll_keep_alive,
        ) as cursor:
            async for hit in cursor:
                source = hit.get("_source")
                if not source:
                    continue

                try:
                    analytic = AnalyticDocument.model_validate(source)
                except ValidationError as e:
                    self.logger.warning(
                        "result_document_invalid", doc_id=hit.get("_id"), error=str(e)
                    )
                    continue

                if analytic_needs_recalculation(analytic, now):
                    due.append(analytic)

        return due
