from sqlalchemy import Column, Integer, String, Enum, DateTime, Text, Index
from models.base import Base, SyncStatus
from core.clock import utcnow


class SyncJob(Base):
    """
    Run ledger: last consolidation attempt per named job.
    
    Purpose:
    - Cooldown input (last_execution_time)
    - Single-flight marker (status=RUNNING + current_run_id + run_started_at)
    - Status surface for dashboards
    
    Design:
    - One row per job, created lazily on the first run, never deleted
    - last_execution_time is the start time of the last successful run
    """
    __tablename__ = "sync_jobs"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String(100), nullable=False)
    
    status = Column(Enum(SyncStatus, name="sync_status"), default=SyncStatus.NEVER_RUN, nullable=False)
    last_execution_time = Column(DateTime, nullable=True)
    records_processed = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    
    # In-flight run marker
    current_run_id = Column(String(36), nullable=True)
    run_started_at = Column(DateTime, nullable=True)
    
    # Statistics
    total_runs = Column(Integer, default=0, nullable=False)
    last_success_at = Column(DateTime, nullable=True)
    last_failure_at = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    __table_args__ = (
        Index("idx_sync_job_name", "job_name", unique=True),
    )
