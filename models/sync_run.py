from sqlalchemy import Column, Integer, String, Enum, DateTime, Float, Text, Index
from models.base import Base, JSONType, SyncStatus
from core.clock import utcnow


class SyncRun(Base):
    """
    Audit trail of every consolidation run that passed the single-flight guard.
    
    Purpose:
    - Run history that survives restarts
    - Per-run mutation counts and error details
    """
    __tablename__ = "sync_runs"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), unique=True, nullable=False, index=True)
    job_name = Column(String(100), nullable=False, index=True)
    
    status = Column(Enum(SyncStatus, name="sync_status"), default=SyncStatus.RUNNING, nullable=False)
    
    started_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    
    events_consumed = Column(Integer, default=0)
    rows_inserted = Column(Integer, default=0)
    rows_updated = Column(Integer, default=0)
    rows_deleted = Column(Integer, default=0)
    records_processed = Column(Integer, default=0)
    
    error_message = Column(Text, nullable=True)
    error_details = Column(JSONType, nullable=True)
    
    __table_args__ = (
        Index("idx_sync_run_job_started", "job_name", "started_at"),
    )
