"""
Cashback settlement tasks.

Pending settlement, failed retries, reconciliation of stuck records and
expiry. Each run holds a distributed lock so a sweep never overlaps
itself across workers.
"""

import dramatiq
from dramatiq.middleware import Shutdown
from loguru import logger

import jobs.broker  # noqa: F401  (sets the Redis broker before actors register)
from jobs.async_runner import run_async
from jobs.utils.locking import run_locked
from settlement.config.settings import settings

DRAMATIQ_TIME_LIMIT = 300_000  # 5 min, matches DISTRIBUTED_LOCK_TIMEOUT


@dramatiq.actor(max_retries=0, time_limit=DRAMATIQ_TIME_LIMIT)
def process_pending_cashback() -> dict | None:
    """
    Settle eligible PENDING cashbacks.

    Returns:
        Dict with processed, successful, failed, skipped counts
    """
    logger.info("Starting pending cashback processing...")

    try:
        result = run_async(
            run_locked(
                "cashback_pending_settlement",
                lambda services: services.processor.process_pending_cashback(
                    settings.cashback_batch_size
                ),
            )
        )
        logger.info(f"Pending cashback processing complete: {result}")
        return result

    except Shutdown:
        logger.warning("Pending cashback processing interrupted by shutdown")
        raise
    except Exception as e:
        logger.exception(f"Pending cashback processing failed: {e}")
        return {"error": str(e)}


@dramatiq.actor(max_retries=0, time_limit=DRAMATIQ_TIME_LIMIT)
def retry_failed_cashback() -> dict | None:
    """
    Retry FAILED cashbacks whose backoff elapsed.

    Records at cashback_max_retries stay FAILED for manual review.
    """
    logger.info("Starting failed cashback retry...")

    try:
        result = run_async(
            run_locked(
                "cashback_retry_settlement",
                lambda services: services.processor.retry_failed_cashback(
                    settings.cashback_max_retries, settings.cashback_batch_size
                ),
            )
        )
        logger.info(f"Failed cashback retry complete: {result}")
        return result

    except Shutdown:
        logger.warning("Failed cashback retry interrupted by shutdown")
        raise
    except Exception as e:
        logger.exception(f"Failed cashback retry failed: {e}")
        return {"error": str(e)}


@dramatiq.actor(max_retries=0, time_limit=DRAMATIQ_TIME_LIMIT)
def reconcile_processing_cashback() -> dict | None:
    """
    Close PROCESSING cashbacks older than stuck_processing_minutes from
    chain state.
    """
    logger.info("Starting processing cashback reconciliation...")

    try:
        result = run_async(
            run_locked(
                "cashback_reconciliation",
                lambda services: services.processor.reconcile_processing_cashback(
                    settings.stuck_processing_minutes, settings.cashback_batch_size
                ),
            )
        )
        logger.info(f"Processing cashback reconciliation complete: {result}")
        return result

    except Exception as e:
        logger.exception(f"Processing cashback reconciliation failed: {e}")
        return {"error": str(e)}


@dramatiq.actor(max_retries=3, time_limit=DRAMATIQ_TIME_LIMIT)
def cancel_expired_cashback() -> int | None:
    """Cancel PENDING cashbacks past expires_at."""
    try:
        cancelled = run_async(
            run_locked(
                "cashback_expiry",
                lambda services: services.processor.cancel_expired_cashback(
                    settings.cashback_batch_size
                ),
            )
        )
        if cancelled:
            logger.info(f"Cancelled {cancelled} expired cashback")
        return cancelled

    except Exception as e:
        logger.exception(f"Expired cashback cancellation failed: {e}")
        return None
