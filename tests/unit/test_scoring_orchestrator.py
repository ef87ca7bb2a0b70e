"""Unit tests for the scoring orchestrator."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from mitre_data_quality.schemas.data_quality import ScoringAction
from mitre_data_quality.services.scoring_orchestrator import ScoringOrchestrator


def _mock_service() -> MagicMock:
    service = MagicMock()
    service.probe_gateway = MagicMock()
    service.probe_gateway.client = "service-client"
    service.results_available = AsyncMock(return_value=True)
    service.process_all_analytics = AsyncMock()
    service.get_analytics_needing_recalculation = AsyncMock(return_value=[])
    service.process_analytic = AsyncMock(side_effect=lambda analytic: analytic)
    service.save_result = AsyncMock()
    service.refresh_results = AsyncMock()
    return service


class TestIncrementalPass:
    """Tests for choosing between full, update and no-op passes."""

    @pytest.mark.asyncio
    async def test_missing_results_index_runs_full_pass(
        self, fake_es, ecs_index, log_documents, test_settings, scoring_service
    ):
        orchestrator = ScoringOrchestrator(scoring_service)

        result = await orchestrator.run_incremental_pass()

        assert result.action == ScoringAction.INIT
        assert result.count == -1
        assert len(fake_es.store[test_settings.results_index_name]) == 2

    @pytest.mark.asyncio
    async def test_empty_results_index_runs_full_pass(
        self, fake_es, ecs_index, test_settings, scoring_service
    ):
        fake_es.store[test_settings.results_index_name] = {}
        orchestrator = ScoringOrchestrator(scoring_service)

        result = await orchestrator.run_incremental_pass()

        assert result.action == ScoringAction.INIT

    @pytest.mark.asyncio
    async def test_nothing_due_writes_nothing(
        self, fake_es, ecs_index, test_settings, scoring_service
    ):
        orchestrator = ScoringOrchestrator(scoring_service)
        await orchestrator.run_incremental_pass()
        writes_after_init = len(fake_es.writes)

        result = await orchestrator.run_incremental_pass()

        assert result.action == ScoringAction.NONE
        assert result.count == 0
        assert len(fake_es.writes) == writes_after_init

    @pytest.mark.asyncio
    async def test_due_analytics_are_rescored(
        self, fake_es, ecs_index, test_settings, scoring_service
    ):
        service = scoring_service
        orchestrator = ScoringOrchestrator(service)
        await orchestrator.run_incremental_pass()

        later = datetime.now(timezone.utc) + timedelta(days=8)
        due = await service.get_analytics_needing_recalculation(later)
        service.get_analytics_needing_recalculation = AsyncMock(return_value=due)
        fake_es.writes.clear()
        fake_es.refreshed.clear()

        result = await orchestrator.run_incremental_pass()

        assert result.action == ScoringAction.UPDATE
        assert result.count == 2
        assert len(fake_es.writes) == 2
        assert fake_es.refreshed == [test_settings.results_index_name]

    @pytest.mark.asyncio
    async def test_failed_analytic_does_not_stop_update(self):
        service = _mock_service()
        service.get_analytics_needing_recalculation.return_value = [
            MagicMock(id="a"),
            MagicMock(id="b"),
        ]
        service.process_analytic.side_effect = [RuntimeError("boom"), MagicMock(id="b")]
        orchestrator = ScoringOrchestrator(service)

        result = await orchestrator.run_incremental_pass()

        assert result.action == ScoringAction.UPDATE
        assert result.count == 2
        service.save_result.assert_awaited_once()
        service.refresh_results.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_failure_propagates_and_releases(self):
        service = _mock_service()
        service.get_analytics_needing_recalculation.return_value = [MagicMock(id="a")]
        service.refresh_results.side_effect = ConnectionError("refresh failed")
        orchestrator = ScoringOrchestrator(service)

        with pytest.raises(ConnectionError):
            await orchestrator.run_incremental_pass()

        assert orchestrator.is_running is False


class TestMutualExclusion:
    """Only one pass runs at a time."""

    @pytest.mark.asyncio
    async def test_concurrent_pass_is_noop(self):
        service = _mock_service()
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_full_pass():
            started.set()
            await release.wait()

        service.process_all_analytics.side_effect = slow_full_pass
        orchestrator = ScoringOrchestrator(service)

        first = asyncio.create_task(orchestrator.run_full_pass())
        await started.wait()

        assert orchestrator.is_running is True
        second = await orchestrator.run_incremental_pass()
        third = await orchestrator.run_full_pass()

        release.set()
        first_result = await first

        assert second.action == ScoringAction.NONE
        assert second.count == 0
        assert third.action == ScoringAction.NONE
        assert first_result.action == ScoringAction.INIT
        assert service.process_all_analytics.await_count == 1
        service.get_analytics_needing_recalculation.assert_not_awaited()
        assert orchestrator.is_running is False

    @pytest.mark.asyncio
    async def test_flag_released_after_failure(self):
        service = _mock_service()
        service.process_all_analytics.side_effect = ConnectionError("down")
        orchestrator = ScoringOrchestrator(service)

        with pytest.raises(ConnectionError):
            await orchestrator.run_full_pass()

        service.process_all_analytics.side_effect = None
        result = await orchestrator.run_full_pass()

        assert result.action == ScoringAction.INIT


class TestProbeClient:
    """A per-request probe client is used only for the pass."""

    @pytest.mark.asyncio
    async def test_probe_client_swapped_and_restored(self):
        service = _mock_service()
        seen = []

        async def record_client():
            seen.append(service.probe_gateway.client)

        service.process_all_analytics.side_effect = record_client
        orchestrator = ScoringOrchestrator(service)

        await orchestrator.run_full_pass(probe_client="user-client")

        assert seen == ["user-client"]
        assert service.probe_gateway.client == "service-client"

    @pytest.mark.asyncio
    async def test_probe_client_restored_after_failure(self):
        service = _mock_service()
        service.results_available.side_effect = ConnectionError("down")
        orchestrator = ScoringOrchestrator(service)

        with pytest.raises(ConnectionError):
            await orchestrator.run_incremental_pass(probe_client="user-client")

        assert service.probe_gateway.client == "service-client"

    @pytest.mark.asyncio
    async def test_default_uses_service_client(self):
        service = _mock_service()
        seen = []

        async def record_client():
            seen.append(service.probe_gateway.client)

        service.process_all_analytics.side_effect = record_client
        service.results_available.return_value = False

        await ScoringOrchestrator(service).run_incremental_pass()

        assert seen == ["service-client"]


def test_invalidate_settings_cache():
    service = _mock_service()

    ScoringOrchestrator(service).invalidate_settings_cache()

    service.settings_cache.invalidate.assert_called_once_with()
