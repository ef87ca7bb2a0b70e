"""Read access to the ECS mapping and scored results indices."""

from dataclasses import dataclass, field
from typing import Optional

import structlog
from elasticsearch import AsyncElasticsearch, NotFoundError

from mitre_data_quality.core.config import Settings, get_settings
from mitre_data_quality.core.elasticsearch import scrolled_search

logger = structlog.get_logger()


@dataclass
class ScoreSummary:
    """Per-analytic mean quality score and earliest next execution."""

    scores: dict[str, float] = field(default_factory=dict)
    next_executions: dict[str, str] = field(default_factory=dict)


def summarize_result(source: dict) -> tuple[Optional[float], Optional[str]]:
    """Mean quality score and earliest ``next_execution`` of one result."""
    quality_scores = []
    executions = []

    for ref in source.get("x_mitre_log_source_references") or []:
        scores = ((ref.get("mapping") or {}).get("ecs") or {}).get("scores")
        if not scores:
            continue
        if scores.get("quality_score") is not None:
            quality_scores.append(scores["quality_score"])
        if scores.get("next_execution"):
            executions.append(scores["next_execution"])

    if not quality_scores:
        return None, None

    mean = sum(quality_scores) / len(quality_scores)
    return mean, min(executions) if executions else None


class ResultsService:
    """Lookups used by the HTTP API."""

    def __init__(self, client: AsyncElasticsearch, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()

    async def get_ecs_mapping(self, analytic_id: str) -> Optional[dict]:
        return await self._get(self.settings.ecs_index_name, analytic_id)

    async def get_result(self, analytic_id: str) -> Optional[dict]:
        return await self._get(self.settings.results_index_name, analytic_id)

    async def _get(self, index: str, doc_id: str) -> Optional[dict]:
        try:
            response = await self.client.get(index=index, id=doc_id)
        except NotFoundError:
            return None
        return response.get("_source") or {}

    async def ecs_mapping_status(self) -> dict:
        """Whether the ECS mapping index exists and how many analytics it holds."""
        index = self.settings.ecs_index_name
        if not await self.client.indices.exists(index=index):
            return {"available": False, "count": 0}

        response = await self.client.count(index=index)
        return {"available": True, "count": response["count"]}

    async def get_all_scores(self) -> ScoreSummary:
        """Summarize every stored result."""
        summary = ScoreSummary()
        index = self.settings.results_index_name

        if not await self.client.indices.exists(index=index):
            return summary

        async with scrolled_search(
            self.client,
            index,
            page_size=self.settings.scroll_page_size,
            keep_alive=self.settings.scroll_keep_alive,
        ) as cursor:
            async for hit in cursor:
                source = hit.get("_source") or {}
                analytic_id = source.get("id") or hit.get("_id")
                mean, earliest = summarize_result(source)
                if analytic_id is None or mean is None:
                    continue

                summary.scores[analytic_id] = mean
                if earliest:
                    summary.next_executions[analytic_id] = earliest

        logger.debug("score_summary_built", analytics=len(summary.scores))
        return summary
