"""
Database engine and session factory construction with SQLAlchemy async.

Nothing here is created at import time: the application builds one engine
and one session factory at startup and hands them to the components that
need them.
"""

from typing import Callable, Optional
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine_from_settings(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine for the configured warehouse database"""
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=settings.ENVIRONMENT == "development",
        poolclass=NullPool,  # Connections are short-lived; triggers are infrequent
        future=True
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create session factory bound to the engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


def dialect_insert(session: AsyncSession) -> Callable:
    """
    Return the dialect-specific ``insert`` construct for the session's bind.
    
    Both supported backends expose ``on_conflict_do_nothing`` and
    ``on_conflict_do_update``, which the ledger, staging writer and cache
    rely on for atomic create-if-missing semantics.
    """
    dialect_name = session.get_bind().dialect.name
    
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ValueError(f"Unsupported database dialect for upserts: {dialect_name}")
    
    return insert
