"""
FastAPI dependencies resolving the service handles built at startup
"""

from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from consolidation.orchestrator import SyncOrchestrator
from consolidation.ledger import RunLedger


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session"""
    async with request.app.state.services.session_factory() as session:
        yield session


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.services.orchestrator


def get_ledger(request: Request) -> RunLedger:
    return request.app.state.services.ledger
