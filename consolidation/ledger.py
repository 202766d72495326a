"""
Run ledger: durable per-job run status with single-flight protection.

The RUNNING marker is taken with one conditional UPDATE against the shared
database, so the guard holds across processes and not only within one event
loop. Each begun run also gets a row in the ``sync_runs`` audit history.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import select, update, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import logging
import uuid

from core.clock import utcnow
from core.config import settings
from core.database import dialect_insert
from core.exceptions import AlreadyRunning, CooldownNotElapsed, LedgerUnavailable, SyncException
from consolidation.merge import MergeResult
from models.base import SyncStatus
from models.sync_job import SyncJob
from models.sync_run import SyncRun

logger = logging.getLogger(__name__)

STALE_RUN_MESSAGE = "Run exceeded the maximum run duration and was presumed crashed"


@dataclass
class SyncRunRecord:
    """Snapshot of a job's ledger row"""
    job_name: str
    status: SyncStatus = SyncStatus.NEVER_RUN
    last_execution_time: Optional[datetime] = None
    records_processed: int = 0
    error_message: Optional[str] = None
    current_run_id: Optional[str] = None
    run_started_at: Optional[datetime] = None
    total_runs: int = 0
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, job: SyncJob) -> "SyncRunRecord":
        return cls(
            job_name=job.job_name,
            status=job.status,
            last_execution_time=job.last_execution_time,
            records_processed=job.records_processed or 0,
            error_message=job.error_message,
            current_run_id=job.current_run_id,
            run_started_at=job.run_started_at,
            total_runs=job.total_runs or 0,
            last_success_at=job.last_success_at,
            last_failure_at=job.last_failure_at
        )


@dataclass(frozen=True)
class RunHandle:
    """Proof of holding a job's RUNNING marker"""
    job_name: str
    run_id: str
    started_at: datetime


@dataclass
class RunOutcome:
    """Terminal result handed to ``complete_run``"""
    status: SyncStatus
    records_processed: int = 0
    merge_result: Optional[MergeResult] = None
    error: Optional[str] = None
    error_details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def succeeded(cls, merge_result: MergeResult) -> "RunOutcome":
        return cls(
            status=SyncStatus.SUCCEEDED,
            records_processed=merge_result.rows_affected,
            merge_result=merge_result
        )

    @classmethod
    def failed(cls, error: Exception) -> "RunOutcome":
        if isinstance(error, SyncException):
            return cls(status=SyncStatus.FAILED, error=error.message, error_details=error.to_dict())
        return cls(
            status=SyncStatus.FAILED,
            error=str(error),
            error_details={"error_type": type(error).__name__, "message": str(error)}
        )


class RunLedger:
    """
    Storage for sync job status.

    Responsibilities:
    - Default NEVER_RUN view of unknown jobs
    - Atomic RUNNING check-and-set with a staleness threshold
    - Terminal status recording guarded by run id
    - Audit history of runs
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_run_duration: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.session_factory = session_factory
        self.max_run_duration = max_run_duration or settings.max_run_duration
        self.clock = clock

    def is_stale(self, record: SyncRunRecord, now: Optional[datetime] = None) -> bool:
        """True when a RUNNING marker is older than the maximum run duration"""
        if record.status != SyncStatus.RUNNING or record.run_started_at is None:
            return False
        now = now or self.clock()
        return record.run_started_at < now - self.max_run_duration

    async def get(self, job_name: str) -> SyncRunRecord:
        """Return the job's ledger record, or a NEVER_RUN default"""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SyncJob).where(SyncJob.job_name == job_name)
                )
                job = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise LedgerUnavailable(
                "Failed to read sync job status",
                context={"job_name": job_name, "operation": "get"},
                original_exception=e
            )

        if job is None:
            return SyncRunRecord(job_name=job_name)
        return SyncRunRecord.from_model(job)

    async def begin_run(self, job_name: str, cooldown: Optional[timedelta] = None) -> RunHandle:
        """
        Take the job's RUNNING marker.

        Args:
            job_name: Job to start
            cooldown: Minimum interval since the last successful start,
                checked in the same UPDATE as the marker; zero, negative or
                omitted disables the check

        Raises:
            AlreadyRunning: A non-stale run holds the marker
            CooldownNotElapsed: A run started inside the cooldown window
            LedgerUnavailable: The ledger could not be written
        """
        now = self.clock()
        cutoff = now - self.max_run_duration
        run_id = str(uuid.uuid4())
        acquired = False
        blocker = None

        conditions = [
            SyncJob.job_name == job_name,
            or_(
                SyncJob.status != SyncStatus.RUNNING,
                SyncJob.run_started_at < cutoff
            )
        ]
        if cooldown is not None and cooldown > timedelta(0):
            conditions.append(or_(
                SyncJob.last_execution_time.is_(None),
                SyncJob.last_execution_time <= now - cooldown
            ))

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    insert = dialect_insert(session)
                    await session.execute(
                        insert(SyncJob)
                        .values(
                            job_name=job_name,
                            status=SyncStatus.NEVER_RUN,
                            records_processed=0,
                            total_runs=0,
                            created_at=now,
                            updated_at=now
                        )
                        .on_conflict_do_nothing(index_elements=["job_name"])
                    )

                    await self._fail_stale(session, now, cutoff, job_name)

                    result = await session.execute(
                        update(SyncJob)
                        .where(*conditions)
                        .values(
                            status=SyncStatus.RUNNING,
                            current_run_id=run_id,
                            run_started_at=now,
                            total_runs=SyncJob.total_runs + 1,
                            updated_at=now
                        )
                        .execution_options(synchronize_session=False)
                    )
                    acquired = result.rowcount == 1

                    if acquired:
                        session.add(SyncRun(
                            run_id=run_id,
                            job_name=job_name,
                            status=SyncStatus.RUNNING,
                            started_at=now
                        ))
                    else:
                        blocker = (await session.execute(
                            select(SyncJob.status, SyncJob.last_execution_time)
                            .where(SyncJob.job_name == job_name)
                        )).one()

        except SQLAlchemyError as e:
            raise LedgerUnavailable(
                "Failed to begin sync run",
                context={"job_name": job_name, "operation": "begin_run"},
                original_exception=e
            )

        if not acquired and blocker.status == SyncStatus.RUNNING:
            logger.info(f"Sync job {job_name} already has a run in progress")
            raise AlreadyRunning(
                "Another sync run is already in progress",
                context={"job_name": job_name}
            )

        if not acquired:
            logger.info(f"Sync job {job_name} started inside the cooldown window")
            raise CooldownNotElapsed(
                "Another sync run started within the cooldown",
                last_execution_time=blocker.last_execution_time,
                context={
                    "job_name": job_name,
                    "last_execution_time": blocker.last_execution_time.isoformat()
                }
            )

        logger.info(f"Began sync run {run_id} for {job_name}")
        return RunHandle(job_name=job_name, run_id=run_id, started_at=now)

    async def complete_run(self, handle: RunHandle, outcome: RunOutcome) -> bool:
        """
        Record the terminal status of a run.

        On success ``last_execution_time`` becomes the run's start time.

        Returns:
            False if the run no longer owned the job's marker (it was
            declared stale and another run took over); the audit row is
            still completed.
        """
        now = self.clock()
        values: Dict[str, Any] = {
            "status": outcome.status,
            "current_run_id": None,
            "updated_at": now,
        }

        if outcome.status == SyncStatus.SUCCEEDED:
            values.update(
                last_execution_time=handle.started_at,
                records_processed=outcome.records_processed,
                error_message=None,
                last_success_at=now
            )
        else:
            values.update(
                error_message=outcome.error,
                last_failure_at=now
            )

        run_values: Dict[str, Any] = {
            "status": outcome.status,
            "completed_at": now,
            "duration_seconds": (now - handle.started_at).total_seconds(),
            "records_processed": outcome.records_processed,
            "error_message": outcome.error,
            "error_details": outcome.error_details or None,
        }
        if outcome.merge_result:
            run_values.update(
                events_consumed=outcome.merge_result.events_consumed,
                rows_inserted=outcome.merge_result.rows_inserted,
                rows_updated=outcome.merge_result.rows_updated,
                rows_deleted=outcome.merge_result.rows_deleted
            )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(SyncJob)
                        .where(
                            SyncJob.job_name == handle.job_name,
                            SyncJob.current_run_id == handle.run_id
                        )
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    owned = result.rowcount == 1

                    await session.execute(
                        update(SyncRun)
                        .where(SyncRun.run_id == handle.run_id)
                        .values(**run_values)
                        .execution_options(synchronize_session=False)
                    )

        except SQLAlchemyError as e:
            raise LedgerUnavailable(
                "Failed to record sync run outcome",
                context={
                    "job_name": handle.job_name,
                    "run_id": handle.run_id,
                    "operation": "complete_run"
                },
                original_exception=e
            )

        if not owned:
            logger.warning(
                f"Sync run {handle.run_id} for {handle.job_name} was superseded; "
                f"job status left to the newer run"
            )
        else:
            logger.info(f"Sync run {handle.run_id} for {handle.job_name} finished: {outcome.status.value}")

        return owned

    async def recover_stale(self, job_name: Optional[str] = None) -> int:
        """
        Resolve RUNNING markers older than the maximum run duration to FAILED.

        Args:
            job_name: Limit recovery to one job; all jobs when omitted

        Returns:
            Number of jobs recovered
        """
        now = self.clock()

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    recovered = await self._fail_stale(session, now, now - self.max_run_duration, job_name)
        except SQLAlchemyError as e:
            raise LedgerUnavailable(
                "Failed to recover stale sync runs",
                context={"job_name": job_name, "operation": "recover_stale"},
                original_exception=e
            )

        if recovered:
            logger.warning(f"Recovered {recovered} stale sync job(s)")
        return recovered

    async def recent_runs(self, job_name: str, limit: int = 10) -> List[SyncRun]:
        """Audit history of a job, newest first"""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SyncRun)
                    .where(SyncRun.job_name == job_name)
                    .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise LedgerUnavailable(
                "Failed to read sync run history",
                context={"job_name": job_name, "operation": "recent_runs"},
                original_exception=e
            )

    async def _fail_stale(
        self,
        session: AsyncSession,
        now: datetime,
        cutoff: datetime,
        job_name: Optional[str] = None
    ) -> int:
        job_filter = [SyncJob.status == SyncStatus.RUNNING, SyncJob.run_started_at < cutoff]
        run_filter = [SyncRun.status == SyncStatus.RUNNING, SyncRun.started_at < cutoff]
        if job_name is not None:
            job_filter.append(SyncJob.job_name == job_name)
            run_filter.append(SyncRun.job_name == job_name)

        result = await session.execute(
            update(SyncJob)
            .where(and_(*job_filter))
            .values(
                status=SyncStatus.FAILED,
                current_run_id=None,
                error_message=STALE_RUN_MESSAGE,
                last_failure_at=now,
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )

        await session.execute(
            update(SyncRun)
            .where(and_(*run_filter))
            .values(
                status=SyncStatus.FAILED,
                completed_at=now,
                error_message=STALE_RUN_MESSAGE
            )
            .execution_options(synchronize_session=False)
        )

        return result.rowcount
