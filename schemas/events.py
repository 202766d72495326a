"""
Pydantic schemas for staged change events
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Any
from datetime import datetime
from models.base import Operation
from core.clock import to_naive_utc


class StagedEvent(BaseModel):
    """
    Validated view of one staging row.
    
    Ensures:
    - Identifiers are present and not blank
    - Operation is one of CREATE / UPDATE / DELETE
    - Timestamps are naive UTC, comparable with stored values
    
    Identifiers and payload are kept exactly as stored: staging rows are
    cleared by their raw event_id, and the payload is opaque JSON.
    """
    
    event_id: str = Field(..., min_length=1, max_length=255)
    document_id: str = Field(..., min_length=1, max_length=255)
    timestamp: datetime
    operation: Operation
    payload: Optional[Any] = None
    
    @validator("document_id", "event_id")
    def reject_blank_identifier(cls, v):
        if not v.strip():
            raise ValueError("Identifier cannot be blank")
        return v
    
    @validator("timestamp")
    def normalize_timestamp(cls, v):
        return to_naive_utc(v)
    
    class Config:
        from_attributes = True
