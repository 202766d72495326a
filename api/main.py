"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, sync
from api.middleware import RequestContextMiddleware
from consolidation.scheduler import SyncScheduler
from consolidation.services import build_services
from core.config import settings
from core.exceptions import LedgerUnavailable
from core.logging import setup_logging
import logging

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Change Sync Backend API",
    description="Consolidates staged change events into the latest-state table",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(sync.router)


@app.on_event("startup")
async def startup_event():
    """Build service handles, recover crashed runs, start the scheduler"""
    setup_logging()
    logger.info("Starting Change Sync Backend API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    services = build_services()
    app.state.services = services

    try:
        await services.ledger.recover_stale()
    except LedgerUnavailable as e:
        logger.error(f"Stale run recovery skipped: {e.message}")

    app.state.scheduler = None
    if settings.SYNC_SCHEDULER_ENABLED:
        app.state.scheduler = SyncScheduler(services.orchestrator)
        app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Change Sync Backend API")

    if getattr(app.state, "scheduler", None):
        app.state.scheduler.stop()

    services = getattr(app.state, "services", None)
    if services is not None:
        await services.dispose()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Change Sync Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "poll": "/sync",
            "trigger": "/sync/trigger",
            "status": "/sync/status",
            "runs": "/sync/runs"
        }
    }
