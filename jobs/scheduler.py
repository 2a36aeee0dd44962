"""
Settlement scheduler.

Enqueues the settlement and event actors on fixed intervals and serves
the health endpoints. Workers run separately:

    dramatiq jobs.tasks.cashback_settlement jobs.tasks.blockchain_events
"""

import asyncio
import signal

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

import jobs.broker  # noqa: F401  (registers the Redis broker)
from jobs.health import set_blockchain_client, set_scheduler, start_health_server, stop_health_server
from jobs.tasks.blockchain_events import sweep_blockchain_events
from jobs.tasks.cashback_settlement import (
    cancel_expired_cashback,
    process_pending_cashback,
    reconcile_processing_cashback,
    retry_failed_cashback,
)
from settlement.config.database import create_engine, create_session_factory
from settlement.config.settings import settings
from settlement.initialization.logging import setup_logging
from settlement.initialization.services import build_services

# Intervals in seconds
PENDING_SETTLEMENT_INTERVAL = 30
FAILED_RETRY_INTERVAL = 60
RECONCILIATION_INTERVAL = 300
EXPIRY_INTERVAL = 600
EVENT_SWEEP_INTERVAL = 15


def create_scheduler() -> AsyncIOScheduler:
    """Create scheduler with every settlement job registered."""
    scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
        timezone="UTC",
    )

    jobs = [
        ("process_pending_cashback", "Process Pending Cashback", process_pending_cashback, PENDING_SETTLEMENT_INTERVAL),
        ("retry_failed_cashback", "Retry Failed Cashback", retry_failed_cashback, FAILED_RETRY_INTERVAL),
        (
            "reconcile_processing_cashback",
            "Reconcile Processing Cashback",
            reconcile_processing_cashback,
            RECONCILIATION_INTERVAL,
        ),
        ("cancel_expired_cashback", "Cancel Expired Cashback", cancel_expired_cashback, EXPIRY_INTERVAL),
        ("sweep_blockchain_events", "Sweep Blockchain Events", sweep_blockchain_events, EVENT_SWEEP_INTERVAL),
    ]
    for job_id, name, actor, seconds in jobs:
        scheduler.add_job(
            actor.send,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=name,
        )
    return scheduler


async def main() -> None:
    setup_logging(settings.log_level, settings.log_file)
    logger.info(f"Starting settlement scheduler ({settings.environment})")

    engine = create_engine(settings)
    services = build_services(create_session_factory(engine), settings)
    set_blockchain_client(services.client)

    scheduler = create_scheduler()
    scheduler.start()
    set_scheduler(scheduler)
    runner, _ = await start_health_server(port=settings.health_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down settlement scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)
        await services.close()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
