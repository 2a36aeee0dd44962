"""
RPC wrapper with timeout.

Provides centralized timeout handling for blockchain RPC calls.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from loguru import logger

from settlement.config.constants import BLOCKCHAIN_TIMEOUT
from settlement.utils.exceptions import BlockchainTimeoutError

T = TypeVar("T")


async def with_timeout(
    coro: Awaitable[T],
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
    network: str | None = None,
) -> T:
    """
    Execute async coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds (default: BLOCKCHAIN_TIMEOUT)
        operation_name: Operation name for logging
        network: Network name for the raised error

    Returns:
        Result of the coroutine

    Raises:
        BlockchainTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.error(error_msg)
        raise BlockchainTimeoutError(error_msg, network=network) from e
