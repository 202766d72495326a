from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class Operation(str, enum.Enum):
    """Kind of document write captured by a change event"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SyncStatus(str, enum.Enum):
    """Sync job / run status"""
    NEVER_RUN = "never_run"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
