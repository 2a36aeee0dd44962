"""
Distributed lock.

Redis-backed lock for jobs that must not run concurrently across worker
processes. Without a Redis client the lock degrades to an asyncio.Lock
shared by everything running on the same event loop.
"""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError

from settlement.config.constants import DISTRIBUTED_LOCK_BLOCKING_TIMEOUT, DISTRIBUTED_LOCK_TIMEOUT

_local_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]] = (
    weakref.WeakKeyDictionary()
)


def _local_lock(key: str) -> asyncio.Lock:
    locks = _local_locks.setdefault(asyncio.get_running_loop(), {})
    return locks.setdefault(key, asyncio.Lock())


class LockNotAcquiredError(TimeoutError):
    """Raised when the lock is held elsewhere for longer than blocking_timeout."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Could not acquire lock {key}")


class DistributedLock:
    """
    Lock keyed by name, shared through Redis.

    Usage:
        lock = DistributedLock(redis_client=client)
        async with lock.lock("cashback_settlement", timeout=300):
            ...
    """

    def __init__(self, redis_client: redis.Redis | None = None):
        self._redis = redis_client

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        timeout: int = DISTRIBUTED_LOCK_TIMEOUT,
        blocking_timeout: float = DISTRIBUTED_LOCK_BLOCKING_TIMEOUT,
    ) -> AsyncIterator[None]:
        """
        Hold the lock for the duration of the block.

        Args:
            key: Lock name
            timeout: Lock expiry in seconds (protects against crashed holders)
            blocking_timeout: Seconds to wait for acquisition

        Raises:
            LockNotAcquiredError: If the lock could not be acquired in time
        """
        if self._redis is None:
            logger.debug(f"No Redis client, using local lock for {key}")
            local_lock = _local_lock(key)
            try:
                await asyncio.wait_for(local_lock.acquire(), timeout=blocking_timeout)
            except TimeoutError as e:
                raise LockNotAcquiredError(key) from e
            try:
                yield
            finally:
                local_lock.release()
            return

        redis_lock = self._redis.lock(
            f"lock:{key}",
            timeout=timeout,
            blocking_timeout=blocking_timeout,
        )
        acquired = await redis_lock.acquire()
        if not acquired:
            raise LockNotAcquiredError(key)

        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except LockError as e:
                # Expired while held; the next holder already owns it
                logger.warning(f"Lock {key} expired before release: {e}")
