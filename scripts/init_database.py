#!/usr/bin/env python3
"""Initialize database tables."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from donation_matrix.config.database import engine
from donation_matrix.config.logging_config import setup_logging
from donation_matrix.models import Base


async def init_database() -> None:
    """Create all database tables."""
    logger.info("Connecting to database...")

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    await engine.dispose()
    logger.success("Database tables created successfully!")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
