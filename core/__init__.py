"""
Core utilities and configuration for the consolidation service.

Modules:
    config: Application configuration and environment variable management
    database: Engine / session factory construction and dialect helpers
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration
    clock: Naive-UTC time helpers

Usage:
    from core.config import settings
    from core.database import create_engine_from_settings, create_session_factory
    from core.exceptions import MergeFailed, LedgerUnavailable
    from core.logging import setup_logging

Example:
    setup_logging()
    
    engine = create_engine_from_settings()
    session_factory = create_session_factory(engine)
    
    async with session_factory() as session:
        ...
"""

__all__ = [
    "settings",
    "create_engine_from_settings",
    "create_session_factory",
    "setup_logging",
    "utcnow",
    # Exceptions
    "SyncException",
    "AlreadyRunning",
    "MergeFailed",
    "LedgerUnavailable",
    "StagingError",
]
