"""
Logging configuration for the sync service
"""

import logging
import sys
from typing import Optional
from core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: Optional[str] = None):
    """
    Configure root logging once per process.

    Args:
        level: Overrides LOG_LEVEL (e.g. for one-shot scripts)
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    
    # Statement echo is driven by the engine's echo flag, not by LOG_LEVEL
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    # One line per scheduled run comes from consolidation.scheduler
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    
    logger = logging.getLogger(__name__)
    logger.info(
        f"Sync service logging at {level_name} "
        f"(job={settings.SYNC_JOB_NAME}, environment={settings.ENVIRONMENT})"
    )
