"""Distributed lock wrapper for task runs."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from settlement.config.constants import DISTRIBUTED_LOCK_TIMEOUT
from settlement.config.settings import settings
from settlement.initialization.services import SettlementServices
from settlement.utils.distributed_lock import DistributedLock, LockNotAcquiredError
from settlement.utils.redis_utils import get_redis_client

from .database import task_services

T = TypeVar("T")


async def run_locked(
    lock_key: str,
    operation: Callable[[SettlementServices], Awaitable[T]],
    timeout: int = DISTRIBUTED_LOCK_TIMEOUT,
) -> T | None:
    """
    Run ``operation`` with fresh services while holding a Redis lock.

    Returns:
        Operation result, or None if another worker holds the lock
    """
    redis_client = get_redis_client(settings)
    lock = DistributedLock(redis_client=redis_client)
    try:
        async with lock.lock(lock_key, timeout=timeout):
            async with task_services(redis_client) as services:
                return await operation(services)
    except LockNotAcquiredError:
        logger.info(f"{lock_key} already running in another worker, skipping")
        return None
    finally:
        await redis_client.aclose()
