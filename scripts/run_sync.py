"""
Script to run one cooldown-gated consolidation of the configured sync job
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from consolidation.services import build_services
from core.config import settings
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def run_sync() -> int:
    """Run the sync job once; returns the process exit code"""
    services = build_services()

    try:
        logger.info(f"Running sync job: {settings.SYNC_JOB_NAME}")
        outcome = await services.orchestrator.run()
        
        if not outcome.success:
            logger.error(f"Sync failed: {outcome.error}")
            return 1
        
        logger.info(outcome.message)
        return 0
    finally:
        await services.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_sync()))
