"""
Cache of dashboard query results, keyed per stats query and tied to a job.

Reads of the latest-state table are expensive on the warehouse, so their
results are kept until they expire or the job consolidates again. A cache
failure is logged and never breaks the caller.
"""

from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import logging

from core.clock import utcnow
from core.config import settings
from core.database import dialect_insert
from models.cached_stat import CachedStat

logger = logging.getLogger(__name__)


class StatsCache:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        ttl: Optional[timedelta] = None,
        job_name: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.session_factory = session_factory
        self.ttl = ttl or timedelta(minutes=settings.CACHE_TTL_MINUTES)
        self.job_name = job_name or settings.SYNC_JOB_NAME
        self.clock = clock

    async def get(self, stats_key: str) -> Optional[Any]:
        """Cached data if present and not expired"""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(CachedStat).where(
                        CachedStat.stats_key == stats_key,
                        CachedStat.expires_at > self.clock()
                    )
                )
                cached = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error reading cache for {stats_key}: {str(e)}")
            return None

        if cached is None:
            logger.debug(f"Cache miss for: {stats_key}")
            return None

        logger.debug(f"Cache hit for: {stats_key}")
        return cached.data

    async def set(
        self,
        stats_key: str,
        data: Any,
        job_name: Optional[str] = None,
        ttl: Optional[timedelta] = None
    ) -> None:
        now = self.clock()
        expires_at = now + (ttl or self.ttl)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    insert = dialect_insert(session)
                    stmt = insert(CachedStat).values(
                        stats_key=stats_key,
                        data=data,
                        job_name=job_name or self.job_name,
                        cached_at=now,
                        expires_at=expires_at
                    )
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["stats_key"],
                        set_={
                            "data": stmt.excluded.data,
                            "job_name": stmt.excluded.job_name,
                            "cached_at": stmt.excluded.cached_at,
                            "expires_at": stmt.excluded.expires_at,
                        }
                    )
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error caching data for {stats_key}: {str(e)}")
            return

        logger.debug(f"Cached data for: {stats_key}")

    async def invalidate(
        self,
        stats_key: Optional[str] = None,
        job_name: Optional[str] = None
    ) -> int:
        """
        Drop one entry (``stats_key``) or every entry of a job (``job_name``).

        Returns:
            Number of entries removed
        """
        if stats_key is None and job_name is None:
            return 0

        stmt = delete(CachedStat).execution_options(synchronize_session=False)
        if stats_key is not None:
            stmt = stmt.where(CachedStat.stats_key == stats_key)
        else:
            stmt = stmt.where(CachedStat.job_name == job_name)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error invalidating cache: {str(e)}")
            return 0

        logger.info(f"Invalidated {result.rowcount} cached stats ({stats_key or job_name})")
        return result.rowcount

    async def cached(
        self,
        stats_key: str,
        query_fn: Callable[[], Awaitable[Any]],
        job_name: Optional[str] = None,
        ttl: Optional[timedelta] = None
    ) -> Any:
        """Return cached data, or run ``query_fn`` and cache its result"""
        data = await self.get(stats_key)
        if data is not None:
            return data

        data = await query_fn()
        await self.set(stats_key, data, job_name=job_name, ttl=ttl)
        return data
