"""
Sync trigger and status endpoints
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from api.dependencies import get_orchestrator, get_ledger
from consolidation.ledger import RunLedger
from consolidation.orchestrator import SyncOrchestrator
from core.exceptions import LedgerUnavailable
from schemas.api import (
    SyncPollResponse,
    SyncTriggerResponse,
    SyncStatusResponse,
    SyncRunSummary,
    SyncRunsResponse
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["Sync"])


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


@router.get("", response_model=SyncPollResponse, response_model_exclude_none=True)
async def poll_sync(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """
    Opportunistic trigger (called on dashboard load).

    Runs the sync when the cooldown has elapsed; otherwise reports
    shouldRun=false. Contention with another run is a successful no-op.
    """
    try:
        outcome = await orchestrator.run()
    except Exception as e:
        logger.exception(f"[{_request_id(request)}] Sync poll failed")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    if not outcome.success:
        logger.error(f"[{_request_id(request)}] Sync poll failed: {outcome.error}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": outcome.error or outcome.message}
        )

    if not outcome.should_run:
        return SyncPollResponse(should_run=False, message=outcome.message)

    return SyncPollResponse(
        should_run=True,
        ran=outcome.ran,
        records_processed=outcome.records_processed,
        message=outcome.message
    )


@router.post("/trigger", response_model=SyncTriggerResponse)
async def trigger_sync(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """
    Manual trigger.

    Still subject to the cooldown and to single-flight protection.
    """
    try:
        outcome = await orchestrator.run()
    except Exception as e:
        logger.exception(f"[{_request_id(request)}] Manual sync failed")
        return JSONResponse(status_code=500, content={"ranSync": False, "message": str(e)})

    if not outcome.success:
        logger.error(f"[{_request_id(request)}] Manual sync failed: {outcome.error}")
        return JSONResponse(
            status_code=500,
            content={"ranSync": False, "message": outcome.message}
        )

    return SyncTriggerResponse(
        ran_sync=outcome.ran,
        message=outcome.message,
        records_processed=outcome.records_processed
    )


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """
    Read-only ledger projection.

    Returns status "never_run" and a null lastExecutionTime before the
    first run.
    """
    try:
        job_status = await orchestrator.status()
    except LedgerUnavailable as e:
        logger.error(f"[{_request_id(request)}] Error fetching sync status: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch sync status"})

    record = job_status.record

    return SyncStatusResponse(
        last_execution_time=record.last_execution_time,
        status=record.status.value,
        records_processed=record.records_processed,
        error_message=record.error_message,
        minutes_until_next_sync=job_status.minutes_until_next_sync,
        can_run_now=job_status.can_run_now,
        is_stale=job_status.is_stale
    )


@router.get("/runs", response_model=SyncRunsResponse)
async def sync_runs(
    request: Request,
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    ledger: RunLedger = Depends(get_ledger)
):
    """Recent run history of the sync job, newest first"""
    job_name = orchestrator.job_name

    try:
        runs = await ledger.recent_runs(job_name, limit=limit)
    except LedgerUnavailable as e:
        logger.error(f"[{_request_id(request)}] Error fetching sync runs: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch sync runs"})

    return SyncRunsResponse(
        job_name=job_name,
        runs=[SyncRunSummary.model_validate(run) for run in runs]
    )
