from sqlalchemy import Column, String, DateTime
from models.base import Base, JSONType
from core.clock import utcnow


class CachedStat(Base):
    """
    Cached dashboard query result, tied to the sync job whose output it reads.
    
    Entries expire on their own and are invalidated wholesale after every
    successful consolidation of their job.
    """
    __tablename__ = "cached_stats"
    
    stats_key = Column(String(255), primary_key=True)
    data = Column(JSONType, nullable=True)
    job_name = Column(String(100), nullable=False, index=True)
    
    cached_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)
