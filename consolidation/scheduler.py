import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from consolidation.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Interval trigger for the sync job.

    Just another caller of the orchestrator: cooldown and single-flight
    apply to it exactly as to the HTTP triggers.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval_minutes: Optional[int] = None
    ):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes or settings.SYNC_SCHEDULE_MINUTES
        self.job_name = orchestrator.job_name
        self.scheduler = AsyncIOScheduler()

    async def run_sync_job(self):
        """Job to run one consolidation attempt"""
        logger.info(f"Scheduler: Triggering {self.job_name}")
        try:
            outcome = await self.orchestrator.run()
        except Exception as e:
            logger.error(f"Scheduler: {self.job_name} raised - {e}")
            return None

        if outcome.success:
            logger.info(f"Scheduler: {outcome.message}")
        else:
            logger.error(f"Scheduler: {self.job_name} failed - {outcome.error}")
        return outcome

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.job_name,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"Sync Scheduler started (every {self.interval_minutes} min)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Sync Scheduler stopped")
