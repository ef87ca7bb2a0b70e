"""Scoring orchestrator: decides between full and incremental passes."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from elasticsearch import AsyncElasticsearch

from mitre_data_quality.schemas.data_quality import ScoringAction, ScoringRunResult
from mitre_data_quality.services.scoring_service import DataQualityScoringService

logger = structlog.get_logger()


class ScoringOrchestrator:
    """Runs at most one scoring pass at a time.

    A pass may probe the log store with a caller-supplied client (for
    example one carrying the requesting user's credentials). The probe
    client in use before the pass is restored when it ends.
    """

    def __init__(self, scoring_service: DataQualityScoringService):
        self.scoring_service = scoring_service
        self._running = False
        self.logger = logger.bind(service="ScoringOrchestrator")

    @property
    def is_running(self) -> bool:
        return self._running

    def _try_acquire(self) -> bool:
        # No await between the check and the set
        if self._running:
            return False
        self._running = True
        return True

    @asynccontextmanager
    async def _probe_client(
        self, client: Optional[AsyncElasticsearch]
    ) -> AsyncIterator[None]:
        gateway = self.scoring_service.probe_gateway
        previous = gateway.client
        if client is not None:
            gateway.client = client
        try:
            yield
        finally:
            gateway.client = previous

    async def run_full_pass(
        self, probe_client: Optional[AsyncElasticsearch] = None
    ) -> ScoringRunResult:
        """Score every analytic in the ECS mapping index."""
        if not self._try_acquire():
            self.logger.info("scoring_pass_already_running", requested="full")
            return ScoringRunResult.noop()

        try:
            async with self._probe_client(probe_client):
                self.logger.info("full_pass_started")
                await self.scoring_service.process_all_analytics()
            return ScoringRunResult.full()
        finally:
            self._running = False

    async def run_incremental_pass(
        self, probe_client: Optional[AsyncElasticsearch] = None
    ) -> ScoringRunResult:
        """Re-score only what is due, or everything when there are no results yet.

        Returns:
            ``init`` with count -1 for a full pass, ``update`` with the number
            of re-scored analytics, or ``none`` with count 0
        """
        if not self._try_acquire():
            self.logger.info("scoring_pass_already_running", requested="incremental")
            return ScoringRunResult.noop()

        try:
            async with self._probe_client(probe_client):
                return await self._incremental_pass()
        except Exception as e:
            self.logger.error("incremental_pass_failed", error=str(e))
            raise
        finally:
            self._running = False

    async def _incremental_pass(self) -> ScoringRunResult:
        service = self.scoring_service

        if not await service.results_available():
            self.logger.info("results_empty_running_full_pass")
            await service.process_all_analytics()
            return ScoringRunResult.full()

        due = await service.get_analytics_needing_recalculation()
        if not due:
            self.logger.debug("no_analytics_due")
            return ScoringRunResult.noop()

        self.logger.info("analytics_due_for_recalculation", count=len(due))

        for analytic in due:
            try:
                scored = await service.process_analytic(analytic)
                await service.save_result(scored)
            except Exception as e:
                self.logger.error(
                    "analytic_recalculation_failed",
                    analytic_id=analytic.id,
                    error=str(e),
                )

        await service.refresh_results()

        return ScoringRunResult(action=ScoringAction.UPDATE, count=len(due))

    def invalidate_settings_cache(self) -> None:
        """Force configured platform scores to be re-read on the next pass."""
        self.scoring_service.settings_cache.invalidate()
