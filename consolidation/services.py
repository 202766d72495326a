"""
Construction of the long-lived service handles.

Built once per process (API startup, script entry point) and passed by
reference; nothing here is a module-level singleton.
"""

from dataclasses import dataclass
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from core.database import create_engine_from_settings, create_session_factory
from consolidation.cache import StatsCache
from consolidation.ledger import RunLedger
from consolidation.merge import MergeEngine
from consolidation.orchestrator import SyncOrchestrator


@dataclass
class SyncServices:
    engine: AsyncEngine
    session_factory: async_sessionmaker
    ledger: RunLedger
    merge_engine: MergeEngine
    cache: StatsCache
    orchestrator: SyncOrchestrator

    async def dispose(self):
        await self.engine.dispose()


def build_services(engine: Optional[AsyncEngine] = None) -> SyncServices:
    engine = engine or create_engine_from_settings()
    session_factory = create_session_factory(engine)

    ledger = RunLedger(session_factory)
    merge_engine = MergeEngine(session_factory)
    cache = StatsCache(session_factory)

    return SyncServices(
        engine=engine,
        session_factory=session_factory,
        ledger=ledger,
        merge_engine=merge_engine,
        cache=cache,
        orchestrator=SyncOrchestrator(ledger, merge_engine, cache=cache)
    )
