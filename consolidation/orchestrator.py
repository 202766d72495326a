# ============================================================================
# File: consolidation/orchestrator.py
# Description: Cooldown-gated, single-flight consolidation runs
# ============================================================================
"""
Sync Orchestrator - the one operation every trigger calls.

Run sequence:
1. Read the run ledger (abort if unavailable)
2. Evaluate the cooldown policy (skip without touching anything)
3. Take the RUNNING marker (skip if another run holds it)
4. Consolidate staging into the latest-state table
5. Record SUCCEEDED / FAILED
6. Invalidate cached dashboard stats of the job
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
import enum
import logging

from core.clock import utcnow
from core.config import settings
from core.exceptions import AlreadyRunning, CooldownNotElapsed, LedgerUnavailable, MergeFailed
from consolidation.cooldown import should_run, minutes_until_eligible
from consolidation.ledger import RunHandle, RunLedger, RunOutcome, SyncRunRecord
from consolidation.merge import MergeEngine

logger = logging.getLogger(__name__)


class SkipReason(str, enum.Enum):
    """Expected, non-error reasons for not running"""
    COOLDOWN_NOT_ELAPSED = "cooldown_not_elapsed"
    ALREADY_RUNNING = "already_running"


@dataclass
class SyncOutcome:
    success: bool = True
    should_run: bool = False
    ran: bool = False
    records_processed: int = 0
    message: str = ""
    skip_reason: Optional[SkipReason] = None
    error: Optional[str] = None
    run_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["skip_reason"] = self.skip_reason.value if self.skip_reason else None
        return data


@dataclass
class JobStatus:
    record: SyncRunRecord
    minutes_until_next_sync: int
    can_run_now: bool
    is_stale: bool


class SyncOrchestrator:
    """
    Composes cooldown policy, run ledger and merge engine.

    Responsibilities:
    - Never run inside the cooldown window
    - Never run two passes of a job at once
    - Always resolve a taken RUNNING marker to a terminal status
    - Report contention and cooldown as skips, not failures
    """

    def __init__(
        self,
        ledger: RunLedger,
        merge_engine: MergeEngine,
        cache=None,
        job_name: Optional[str] = None,
        cooldown: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.ledger = ledger
        self.merge_engine = merge_engine
        self.cache = cache
        self.job_name = job_name or settings.SYNC_JOB_NAME
        self.cooldown = settings.sync_cooldown if cooldown is None else cooldown
        self.clock = clock

    async def run(self, cooldown: Optional[timedelta] = None) -> SyncOutcome:
        """
        Attempt one consolidation run of this orchestrator's job.

        The job name is fixed at construction: one job guards one staging /
        latest-state table pair.

        Returns:
            SyncOutcome. ``success`` is False only when the ledger is
            unavailable or the merge failed; skips are successful no-ops.
        """
        job_name = self.job_name
        cooldown = self.cooldown if cooldown is None else cooldown

        try:
            record = await self.ledger.get(job_name)
        except LedgerUnavailable as e:
            logger.error(f"Sync {job_name} aborted: {e.message}", extra={"error_context": e.to_dict()})
            return SyncOutcome(
                success=False,
                message="Sync aborted: run status unavailable",
                error=str(e.original_exception or e.message)
            )

        if not should_run(record.last_execution_time, cooldown, self.clock()):
            return self._cooldown_skip(record.last_execution_time, cooldown)

        try:
            handle = await self.ledger.begin_run(job_name, cooldown=cooldown)
        except AlreadyRunning:
            return SyncOutcome(
                should_run=True,
                skip_reason=SkipReason.ALREADY_RUNNING,
                message="Sync already in progress. Skipping this trigger."
            )
        except CooldownNotElapsed as e:
            return self._cooldown_skip(e.last_execution_time, cooldown)
        except LedgerUnavailable as e:
            logger.error(f"Sync {job_name} aborted: {e.message}", extra={"error_context": e.to_dict()})
            return SyncOutcome(
                success=False,
                should_run=True,
                message="Sync aborted: run status unavailable",
                error=str(e.original_exception or e.message)
            )

        failure = None

        try:
            result = await self.merge_engine.consolidate()
        except MergeFailed as e:
            failure = e
        except Exception as e:
            logger.exception(f"Unexpected error during sync {job_name}")
            failure = MergeFailed(
                "Unexpected error during consolidation",
                context={"job_name": job_name},
                original_exception=e
            )

        if failure is not None:
            return await self._record_failure(handle, failure)

        records = result.rows_affected

        try:
            await self.ledger.complete_run(handle, RunOutcome.succeeded(result))
        except LedgerUnavailable as e:
            # The pass is committed; the marker stays RUNNING until it goes stale.
            logger.error(f"Could not record success of run {handle.run_id}: {e.message}")
            return SyncOutcome(
                success=False,
                should_run=True,
                ran=True,
                records_processed=records,
                message="Sync completed but its status could not be recorded",
                error=str(e.original_exception or e.message),
                run_id=handle.run_id
            )

        if self.cache is not None:
            await self.cache.invalidate(job_name=job_name)

        return SyncOutcome(
            should_run=True,
            ran=True,
            records_processed=records,
            message=f"Sync completed successfully. Processed {records} records.",
            run_id=handle.run_id
        )

    async def status(self) -> JobStatus:
        """
        Read-only view of a job's ledger state.

        Raises:
            LedgerUnavailable: The ledger could not be read
        """
        record = await self.ledger.get(self.job_name)
        now = self.clock()
        minutes = minutes_until_eligible(record.last_execution_time, self.cooldown, now)

        return JobStatus(
            record=record,
            minutes_until_next_sync=minutes,
            can_run_now=minutes == 0,
            is_stale=self.ledger.is_stale(record, now)
        )

    async def _record_failure(self, handle: RunHandle, failure: MergeFailed) -> SyncOutcome:
        error = str(failure.original_exception or failure.message)
        logger.error(f"Sync {handle.job_name} failed: {error}", extra={"error_context": failure.to_dict()})

        try:
            await self.ledger.complete_run(handle, RunOutcome.failed(failure))
        except LedgerUnavailable as e:
            logger.error(f"Could not record failure of run {handle.run_id}: {e.message}")

        return SyncOutcome(
            success=False,
            should_run=True,
            message=f"Sync failed: {error}",
            error=error,
            run_id=handle.run_id
        )

    def _cooldown_skip(self, last_execution_time: Optional[datetime], cooldown: timedelta) -> SyncOutcome:
        minutes = minutes_until_eligible(last_execution_time, cooldown, self.clock())
        logger.info(f"Sync {self.job_name} skipped: cooldown not elapsed ({minutes} min left)")
        return SyncOutcome(
            should_run=False,
            skip_reason=SkipReason.COOLDOWN_NOT_ELAPSED,
            message=f"Sync already ran recently. Next sync available in {minutes} minutes."
        )
