"""
Health check endpoint with database and sync job status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.dependencies import get_db, get_orchestrator
from consolidation.orchestrator import SyncOrchestrator
from core.clock import utcnow
from core.exceptions import LedgerUnavailable
from schemas.api import HealthCheckResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Ledger status of the sync job
    """

    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    job_status = None
    job_is_stale = False

    if db_connected:
        try:
            status = await orchestrator.status()
            job_status = status.record.status.value
            job_is_stale = status.is_stale
        except LedgerUnavailable as e:
            logger.error(f"Failed to fetch sync job status: {e.message}")

    return HealthCheckResponse(
        status="healthy",  # Placeholder, validator will update
        timestamp=utcnow(),
        database_connected=db_connected,
        job_status=job_status,
        job_is_stale=job_is_stale
    )
