"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from core.clock import utcnow


# ============================================================================
# Sync Trigger Schemas
# ============================================================================

class SyncPollResponse(BaseModel):
    """Result of the opportunistic (poll) trigger"""
    success: bool = True
    should_run: bool = Field(..., alias="shouldRun")
    ran: Optional[bool] = None
    records_processed: Optional[int] = Field(None, alias="recordsProcessed")
    message: Optional[str] = None
    
    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": True,
                "shouldRun": True,
                "ran": True,
                "recordsProcessed": 42,
                "message": "Sync completed successfully. Processed 42 records."
            }
        }


class SyncTriggerResponse(BaseModel):
    """Result of the manual trigger"""
    ran_sync: bool = Field(..., alias="ranSync")
    message: str
    records_processed: int = Field(0, alias="recordsProcessed")
    
    class Config:
        populate_by_name = True


class SyncStatusResponse(BaseModel):
    """Read-only projection of the run ledger"""
    last_execution_time: Optional[datetime] = Field(None, alias="lastExecutionTime")
    status: str
    records_processed: int = Field(0, alias="recordsProcessed")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    minutes_until_next_sync: int = Field(0, alias="minutesUntilNextSync")
    can_run_now: bool = Field(True, alias="canRunNow")
    is_stale: bool = Field(False, alias="isStale")
    
    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "lastExecutionTime": "2024-01-15T10:00:00",
                "status": "succeeded",
                "recordsProcessed": 42,
                "errorMessage": None,
                "minutesUntilNextSync": 3,
                "canRunNow": False,
                "isStale": False
            }
        }


# ============================================================================
# Run History Schemas
# ============================================================================

class SyncRunSummary(BaseModel):
    run_id: str
    job_name: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    events_consumed: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_deleted: int = 0
    records_processed: int = 0
    error_message: Optional[str] = None
    
    @validator("status", pre=True)
    def status_value(cls, v):
        return getattr(v, "value", v)
    
    class Config:
        from_attributes = True


class SyncRunsResponse(BaseModel):
    job_name: str
    runs: List[SyncRunSummary] = Field(default_factory=list)


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    job_status: Optional[str] = None
    job_is_stale: bool = False
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=utcnow)
    
    @validator("status", always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"
        
        if values.get("job_is_stale") or values.get("job_status") == "failed":
            return "degraded"
        
        return "healthy"


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
