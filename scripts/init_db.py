import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import create_engine_from_settings
from models import Base

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    engine = create_engine_from_settings()

    async with engine.begin() as conn:
        logger.info(
            f"Creating tables ({settings.SYNC_STAGING_TABLE}, {settings.SYNC_LATEST_TABLE}, "
            f"sync_jobs, sync_runs, cached_stats)..."
        )
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")

    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(init_database())
