from sqlalchemy import Column, String, DateTime, Enum, Index
from models.base import Base, JSONType, Operation
from core.clock import utcnow
from core.config import settings


class ChangeEvent(Base):
    """
    Raw change event landed in the staging table.
    
    Purpose:
    - Append-only landing area for document writes
    - Input snapshot of each consolidation pass
    
    Design:
    - event_id is the primary key, so redelivered events collapse
    - Several events per document_id; their order is given by timestamp only
    - Rows are deleted by the consolidation pass that consumed them
    """
    __tablename__ = settings.SYNC_STAGING_TABLE
    
    event_id = Column(String(255), primary_key=True)
    document_id = Column(String(255), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False)
    operation = Column(Enum(Operation, name="change_operation"), nullable=False)
    payload = Column(JSONType, nullable=True)
    
    ingested_at = Column(DateTime, nullable=False, default=utcnow)
    
    __table_args__ = (
        Index(f"idx_{settings.SYNC_STAGING_TABLE}_document_ts", "document_id", "timestamp"),
        {"schema": settings.SYNC_SCHEMA},
    )


class EntityRecord(Base):
    """
    Latest materialized state of one logical entity.
    
    Invariants:
    - One row per document_id
    - timestamp never moves backwards; only a strictly later event replaces it
    """
    __tablename__ = settings.SYNC_LATEST_TABLE
    
    document_id = Column(String(255), primary_key=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    operation = Column(Enum(Operation, name="change_operation"), nullable=False)
    event_id = Column(String(255), nullable=False)
    payload = Column(JSONType, nullable=True)
    
    consolidated_at = Column(DateTime, nullable=False, default=utcnow)
    
    __table_args__ = (
        {"schema": settings.SYNC_SCHEMA},
    )
