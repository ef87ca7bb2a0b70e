"""Scheduler service for background incremental scoring using APScheduler."""

from datetime import datetime
from typing import Optional

import structlog
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mitre_data_quality.services.scoring_orchestrator import ScoringOrchestrator

logger = structlog.get_logger()


class SchedulerService:
    """Runs the incremental scoring pass on a fixed interval."""

    SCORING_JOB_ID = "data_quality_incremental_scoring"

    def __init__(self, orchestrator: ScoringOrchestrator, interval_minutes: int = 60):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.logger = logger.bind(service="SchedulerService")
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60 * 60,  # 1 hour grace period
            },
        )

    @property
    def scheduler(self) -> AsyncIOScheduler:
        """Get the scheduler instance."""
        return self._scheduler

    async def start(self) -> None:
        """Register the scoring job and start the scheduler."""
        self.logger.info("starting_scheduler", interval_minutes=self.interval_minutes)

        self._scheduler.add_job(
            self._execute_incremental_pass,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.SCORING_JOB_ID,
            name="Data quality incremental scoring",
            replace_existing=True,
        )

        self._scheduler.start()
        self.logger.info("scheduler_started")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._scheduler.running:
            return

        self.logger.info("stopping_scheduler")
        self._scheduler.shutdown(wait=False)
        self.logger.info("scheduler_stopped")

    async def _execute_incremental_pass(self) -> None:
        """Execute one scheduled incremental pass with the service client."""
        self.logger.info("executing_scheduled_scoring")

        try:
            result = await self.orchestrator.run_incremental_pass()
            self.logger.info(
                "scheduled_scoring_complete",
                action=result.action.value,
                count=result.count,
            )
        except Exception as e:
            self.logger.exception("scheduled_scoring_failed", error=str(e))

    def _get_job_next_run_time(self, job) -> Optional[datetime]:
        """Safely get next run time from a job.

        APScheduler 3.x jobs may not have next_run_time computed
        until the scheduler is running.
        """
        if job is None:
            return None
        return getattr(job, "next_run_time", None)

    def get_job_status(self) -> Optional[dict]:
        """Get the status of the scoring job."""
        job = self._scheduler.get_job(self.SCORING_JOB_ID)
        if job:
            return {
                "job_id": job.id,
                "name": getattr(job, "name", None),
                "next_run_time": self._get_job_next_run_time(job),
                "pending": getattr(job, "pending", False),
            }
        return None
