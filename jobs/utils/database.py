"""Per-run database engine and service graph for tasks."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis

from settlement.config.database import create_engine, create_session_factory
from settlement.config.settings import settings
from settlement.initialization.services import SettlementServices, build_services


@asynccontextmanager
async def task_services(redis_client: redis.Redis | None = None) -> AsyncIterator[SettlementServices]:
    """
    Build settlement services over a NullPool engine for one task run.

    Signer locks go through ``redis_client`` so concurrent runs never
    share a nonce. The engine and RPC sessions are closed when the block
    exits.
    """
    engine = create_engine(settings, null_pool=True)
    services = build_services(create_session_factory(engine), settings, redis_client=redis_client)
    try:
        yield services
    finally:
        await services.close()
        await engine.dispose()
