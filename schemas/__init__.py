"""
Pydantic schemas for validation and serialization.

Schemas:
    events: Validated view of staged change events
    api: Sync trigger, status, run history and health responses

Usage:
    from schemas.events import StagedEvent
    from schemas.api import SyncPollResponse, SyncStatusResponse

Example:
    event = StagedEvent(
        event_id="evt-1",
        document_id="user-42",
        timestamp="2024-01-15T10:00:00Z",
        operation="UPDATE",
        payload={"plan": "pro"}
    )
    
    assert event.payload == {"plan": "pro"}
    assert event.timestamp.tzinfo is None
"""

__all__ = [
    "StagedEvent",
    "SyncPollResponse",
    "SyncTriggerResponse",
    "SyncStatusResponse",
    "SyncRunSummary",
    "SyncRunsResponse",
    "HealthCheckResponse",
    "ErrorResponse",
]
