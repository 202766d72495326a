import pytest
from unittest.mock import AsyncMock, MagicMock
from consolidation.orchestrator import SyncOutcome
from consolidation.scheduler import SyncScheduler


def make_orchestrator(outcome=None):
    orchestrator = MagicMock()
    orchestrator.job_name = "users_latest_sync"
    orchestrator.run = AsyncMock(return_value=outcome or SyncOutcome(should_run=True, ran=True, message="done"))
    return orchestrator


@pytest.mark.asyncio
async def test_scheduler_initialization():
    scheduler = SyncScheduler(make_orchestrator(), interval_minutes=7)
    assert scheduler.scheduler is not None
    assert scheduler.interval_minutes == 7
    assert scheduler.job_name == "users_latest_sync"


@pytest.mark.asyncio
async def test_scheduler_job_execution():
    orchestrator = make_orchestrator()
    scheduler = SyncScheduler(orchestrator)

    outcome = await scheduler.run_sync_job()

    orchestrator.run.assert_awaited_once_with()
    assert outcome.ran is True


@pytest.mark.asyncio
async def test_scheduler_job_survives_orchestrator_errors():
    orchestrator = make_orchestrator()
    orchestrator.run.side_effect = RuntimeError("unexpected")
    scheduler = SyncScheduler(orchestrator)

    assert await scheduler.run_sync_job() is None


@pytest.mark.asyncio
async def test_scheduler_registers_interval_job():
    scheduler = SyncScheduler(make_orchestrator(), interval_minutes=5)

    scheduler.start()
    try:
        job = scheduler.scheduler.get_job("users_latest_sync")
        assert job is not None
        assert job.max_instances == 1
    finally:
        scheduler.stop()
