#!/usr/bin/env python3
"""Initialize database tables and register configured networks."""

import asyncio
import sys

from loguru import logger

from settlement.config.database import create_engine, create_session_factory
from settlement.config.settings import settings
from settlement.initialization.services import build_services, ensure_networks
from settlement.models import Base

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all database tables and seed blockchain_networks."""
    logger.info("Connecting to database...")
    engine = create_engine(settings)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    services = build_services(create_session_factory(engine), settings)
    try:
        network_ids = await ensure_networks(services.uow, services.registry)
        for name, network_id in network_ids.items():
            logger.info(f"  {name}: id={network_id}")
    finally:
        await services.close()
        await engine.dispose()

    logger.success("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
