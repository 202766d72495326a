"""
Integration tests for the run ledger
"""

import pytest
from datetime import datetime, timedelta
from consolidation.ledger import RunLedger, RunOutcome, STALE_RUN_MESSAGE
from consolidation.merge import MergeResult
from core.exceptions import AlreadyRunning, CooldownNotElapsed, MergeFailed
from models.base import SyncStatus

T0 = datetime(2024, 1, 15, 10, 0, 0)

JOB = "users_latest_sync"


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(session_factory, clock):
    return RunLedger(session_factory, max_run_duration=timedelta(minutes=30), clock=clock)


@pytest.mark.asyncio
async def test_unknown_job_reads_as_never_run(ledger):
    record = await ledger.get(JOB)

    assert record.status == SyncStatus.NEVER_RUN
    assert record.last_execution_time is None
    assert record.records_processed == 0


@pytest.mark.asyncio
async def test_successful_run_sets_execution_time_to_start(ledger, clock):
    handle = await ledger.begin_run(JOB)

    running = await ledger.get(JOB)
    assert running.status == SyncStatus.RUNNING
    assert running.current_run_id == handle.run_id

    clock.advance(seconds=40)
    owned = await ledger.complete_run(
        handle, RunOutcome.succeeded(MergeResult(events_consumed=4, rows_inserted=2, rows_deleted=1))
    )

    record = await ledger.get(JOB)
    assert owned is True
    assert record.status == SyncStatus.SUCCEEDED
    assert record.last_execution_time == T0
    assert record.records_processed == 3
    assert record.current_run_id is None
    assert record.total_runs == 1

    runs = await ledger.recent_runs(JOB)
    assert len(runs) == 1
    assert runs[0].status == SyncStatus.SUCCEEDED
    assert runs[0].events_consumed == 4
    assert runs[0].duration_seconds == 40


@pytest.mark.asyncio
async def test_failed_run_keeps_last_execution_time(ledger, clock):
    first = await ledger.begin_run(JOB)
    await ledger.complete_run(first, RunOutcome.succeeded(MergeResult(rows_inserted=1)))

    clock.advance(minutes=10)
    second = await ledger.begin_run(JOB)
    await ledger.complete_run(second, RunOutcome.failed(MergeFailed("pass failed")))

    record = await ledger.get(JOB)
    assert record.status == SyncStatus.FAILED
    assert record.error_message == "pass failed"
    assert record.last_execution_time == T0
    assert record.last_failure_at == T0 + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_second_begin_while_running_is_rejected(ledger):
    await ledger.begin_run(JOB)

    with pytest.raises(AlreadyRunning):
        await ledger.begin_run(JOB)

    record = await ledger.get(JOB)
    assert record.total_runs == 1
    assert len(await ledger.recent_runs(JOB)) == 1


@pytest.mark.asyncio
async def test_jobs_are_independent(ledger):
    await ledger.begin_run(JOB)
    handle = await ledger.begin_run("orders_latest_sync")

    assert handle.job_name == "orders_latest_sync"


@pytest.mark.asyncio
async def test_stale_run_is_taken_over(ledger, clock):
    crashed = await ledger.begin_run(JOB)

    clock.advance(minutes=31)
    assert ledger.is_stale(await ledger.get(JOB))

    handle = await ledger.begin_run(JOB)
    assert handle.run_id != crashed.run_id

    runs = {run.run_id: run for run in await ledger.recent_runs(JOB)}
    assert runs[crashed.run_id].status == SyncStatus.FAILED
    assert runs[crashed.run_id].error_message == STALE_RUN_MESSAGE
    assert runs[handle.run_id].status == SyncStatus.RUNNING

    # The crashed run coming back must not clobber the new marker
    owned = await ledger.complete_run(crashed, RunOutcome.succeeded(MergeResult()))
    record = await ledger.get(JOB)
    assert owned is False
    assert record.status == SyncStatus.RUNNING
    assert record.current_run_id == handle.run_id


@pytest.mark.asyncio
async def test_recover_stale_marks_failed(ledger, clock):
    await ledger.begin_run(JOB)

    assert await ledger.recover_stale() == 0

    clock.advance(minutes=31)
    assert await ledger.recover_stale() == 1

    record = await ledger.get(JOB)
    assert record.status == SyncStatus.FAILED
    assert record.error_message == STALE_RUN_MESSAGE
    assert record.current_run_id is None
    assert not ledger.is_stale(record)


@pytest.mark.asyncio
async def test_recent_runs_newest_first(ledger, clock):
    run_ids = []
    for _ in range(3):
        handle = await ledger.begin_run(JOB)
        await ledger.complete_run(handle, RunOutcome.succeeded(MergeResult()))
        run_ids.append(handle.run_id)
        clock.advance(minutes=6)

    runs = await ledger.recent_runs(JOB, limit=2)

    assert [run.run_id for run in runs] == run_ids[::-1][:2]


@pytest.mark.asyncio
async def test_begin_run_enforces_cooldown(ledger, clock):
    handle = await ledger.begin_run(JOB, cooldown=timedelta(minutes=5))
    await ledger.complete_run(handle, RunOutcome.succeeded(MergeResult()))

    clock.advance(minutes=4, seconds=59)
    with pytest.raises(CooldownNotElapsed) as exc_info:
        await ledger.begin_run(JOB, cooldown=timedelta(minutes=5))

    assert exc_info.value.last_execution_time == T0
    record = await ledger.get(JOB)
    assert record.status == SyncStatus.SUCCEEDED
    assert record.total_runs == 1

    clock.advance(seconds=1)
    await ledger.begin_run(JOB, cooldown=timedelta(minutes=5))

    assert (await ledger.get(JOB)).total_runs == 2


@pytest.mark.asyncio
async def test_zero_cooldown_skips_the_check(ledger):
    handle = await ledger.begin_run(JOB, cooldown=timedelta(minutes=5))
    await ledger.complete_run(handle, RunOutcome.succeeded(MergeResult()))

    second = await ledger.begin_run(JOB, cooldown=timedelta(0))

    assert second.run_id != handle.run_id


@pytest.mark.asyncio
async def test_running_job_inside_cooldown_reports_already_running(ledger, clock):
    handle = await ledger.begin_run(JOB)
    await ledger.complete_run(handle, RunOutcome.succeeded(MergeResult()))
    await ledger.begin_run(JOB)

    clock.advance(minutes=1)
    with pytest.raises(AlreadyRunning):
        await ledger.begin_run(JOB, cooldown=timedelta(minutes=5))
