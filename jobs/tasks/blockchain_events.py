"""
Blockchain event sweep task.

Dispatches stored, unprocessed events (from subscriptions and webhooks)
to their handlers.
"""

import dramatiq
from loguru import logger

import jobs.broker  # noqa: F401  (sets the Redis broker before actors register)
from jobs.async_runner import run_async
from jobs.utils.locking import run_locked
from settlement.config.settings import settings


@dramatiq.actor(max_retries=3, time_limit=300_000)  # 5 min timeout
def sweep_blockchain_events() -> dict | None:
    """
    Handle unprocessed blockchain events.

    Returns:
        Dict with processed and failed counts
    """
    try:
        result = run_async(
            run_locked(
                "blockchain_event_sweep",
                lambda services: services.ingestor.sweep_pending(settings.event_sweep_batch_size),
            )
        )
        if result and (result["processed"] or result["failed"]):
            logger.info(
                f"Event sweep: {result['processed']} processed, {result['failed']} failed"
            )
        return result

    except Exception as e:
        logger.exception(f"Blockchain event sweep failed: {e}")
        return {"processed": 0, "failed": 0, "error": str(e)}
