#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to make sure the standing leagues exist.
"""

import asyncio
import logging
from backend.database import db
from backend.services import data_service

logger = logging.getLogger(__name__)

DEFAULT_LEAGUES = ("Louisville", "Clarksville")


async def init_defaults():
    """Initialize default database values."""
    logger.info("Initializing default database values...")

    async with db.AsyncSessionLocal() as session:
        for name in DEFAULT_LEAGUES:
            league, created = await data_service.get_or_create_league(session, name)
            if created:
                logger.info("Created default league %s (id %s)", name, league["id"])
            else:
                logger.info("Default league already exists: %s", name)

    logger.info("Default values initialized")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_defaults())
