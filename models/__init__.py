"""
SQLAlchemy ORM models for database tables.

Models:
    base: Declarative base, JSON column type and shared enums (Operation, SyncStatus)
    change_event: Staging table (ChangeEvent) and latest-state table (EntityRecord)
    sync_job: Run ledger, one row per sync job
    sync_run: Run audit history
    cached_stat: Cached dashboard query results

Usage:
    from models import ChangeEvent, EntityRecord, SyncJob, SyncRun
    from models.base import Operation, SyncStatus

Relationships:
    - SyncJob → SyncRun (one-to-many by job_name)
    - SyncJob → CachedStat (one-to-many by job_name, invalidated per run)
"""

from models.base import Base, Operation, SyncStatus
from models.change_event import ChangeEvent, EntityRecord
from models.sync_job import SyncJob
from models.sync_run import SyncRun
from models.cached_stat import CachedStat

__all__ = [
    "Base",
    "Operation",
    "SyncStatus",
    "ChangeEvent",
    "EntityRecord",
    "SyncJob",
    "SyncRun",
    "CachedStat",
]
