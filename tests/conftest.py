"""
Pytest configuration and fixtures
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SYNC_SCHEDULER_ENABLED", "false")

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from core.database import create_session_factory
from models import Base, ChangeEvent, EntityRecord, Operation

T0 = datetime(2024, 1, 15, 10, 0, 0)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create test database engine (file-backed so every session sees the same data)"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'sync_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return create_session_factory(test_engine)


def at(seconds: int) -> datetime:
    """Event timestamp `seconds` after T0"""
    return T0 + timedelta(seconds=seconds)


def change_event(document_id, seconds, operation, event_id=None, payload=None) -> ChangeEvent:
    return ChangeEvent(
        event_id=event_id or f"{document_id}-{seconds}-{operation.value.lower()}",
        document_id=document_id,
        timestamp=at(seconds),
        operation=operation,
        payload=payload if payload is not None else {"seq": seconds}
    )


def entity_record(document_id, seconds, payload=None, operation=Operation.CREATE) -> EntityRecord:
    return EntityRecord(
        document_id=document_id,
        timestamp=at(seconds),
        operation=operation,
        event_id=f"{document_id}-{seconds}-seed",
        payload=payload if payload is not None else {"seq": seconds}
    )


@pytest.fixture
def make_event():
    return change_event


@pytest.fixture
def make_record():
    return entity_record


@pytest_asyncio.fixture
async def seed(session_factory):
    """Insert ORM rows in their own committed session"""
    async def _seed(*rows):
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()
    return _seed


@pytest_asyncio.fixture
async def read_rows(session_factory):
    """Read every row of a model through a fresh session"""
    async def _read(model):
        async with session_factory() as session:
            result = await session.execute(select(model))
            return list(result.scalars().all())
    return _read
