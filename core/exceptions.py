"""
Custom exceptions for the consolidation service with structured error context.

Each exception carries context information for debugging and for the run
ledger's error details.

Exception Hierarchy:
    SyncException (base)
    ├── AlreadyRunning      (contention, reported as a skip, never a failure)
    ├── CooldownNotElapsed  (another run started inside the cooldown window)
    ├── MergeFailed         (reconciliation pass could not complete)
    ├── LedgerUnavailable   (run status cannot be read or written)
    └── StagingError        (change events could not be staged)

A cooldown seen on the first ledger read is a plain skip with no exception;
CooldownNotElapsed only covers a run that started between that read and
begin_run.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from core.clock import utcnow


class SyncException(Exception):
    """
    Base exception for all consolidation errors.
    
    Attributes:
        message: Human-readable error message
        context: Additional context information (job name, table, etc.)
        original_exception: The original exception that was caught (if any)
    """
    
    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = utcnow()
        
        self.context["error_timestamp"] = self.timestamp.isoformat()
        
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception
    
    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"
        
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"
        
        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"
        
        return base_msg
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


class AlreadyRunning(SyncException):
    """
    Raised by the run ledger when another run holds the job's RUNNING marker.
    
    Context should include:
        - job_name: Name of the sync job
        - run_started_at: Start time of the in-flight run (if known)
    """
    pass


class MergeFailed(SyncException):
    """
    Raised when a consolidation pass cannot complete. The pass is rolled back,
    so staging and latest-state tables keep their pre-run contents.
    
    Context should include:
        - staging_table / latest_table: Tables involved
        - phase: snapshot, plan, apply or clear
        - event_id: Offending staged event (for malformed rows)
    """
    pass


class LedgerUnavailable(SyncException):
    """
    Raised when run status cannot be read or written. A run must abort
    rather than proceed without single-flight protection.
    
    Context should include:
        - job_name: Name of the sync job
        - operation: get, begin_run, complete_run, recover_stale, recent_runs
    """
    pass


class StagingError(SyncException):
    """
    Raised when change events cannot be appended to the staging table.
    
    Context should include:
        - staging_table: Target table
        - event_id: Offending event (for validation failures)
    """
    pass


class CooldownNotElapsed(SyncException):
    """
    Raised by the run ledger when a run started inside the cooldown window
    after the caller's own eligibility check. Reported as a skip.
    
    Context should include:
        - job_name: Name of the sync job
        - last_execution_time: Start time of the last successful run
    """
    
    def __init__(
        self,
        message: str,
        last_execution_time: Optional[datetime] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.last_execution_time = last_execution_time
        super().__init__(message, context=context, original_exception=original_exception)
