"""
Health check server for scheduler monitoring.

Provides HTTP endpoints for scheduler and blockchain health.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from settlement.services.blockchain.client import BlockchainClient

# Global references for health checks
_scheduler: AsyncIOScheduler | None = None
_blockchain_client: BlockchainClient | None = None


def set_scheduler(scheduler: AsyncIOScheduler) -> None:
    """
    Set the scheduler instance for health checks.

    Args:
        scheduler: AsyncIOScheduler instance to monitor
    """
    global _scheduler
    _scheduler = scheduler
    logger.info("Scheduler registered for health checks")


def set_blockchain_client(client: BlockchainClient) -> None:
    """Set the blockchain client checked by /health/blockchain."""
    global _blockchain_client
    _blockchain_client = client


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with scheduler status
    """
    if _scheduler is None:
        return web.json_response(
            {
                "status": "unhealthy",
                "error": "Scheduler not initialized",
            },
            status=503,
        )

    is_running = _scheduler.running
    jobs = _scheduler.get_jobs()
    job_info = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in jobs
    ]

    return web.json_response(
        {
            "status": "healthy" if is_running else "stopped",
            "scheduler_running": is_running,
            "jobs_count": len(jobs),
            "jobs": job_info,
        }
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """
    Readiness check endpoint.

    Returns:
        JSON response indicating if scheduler is ready to accept traffic
    """
    if _scheduler is None or not _scheduler.running:
        return web.json_response(
            {
                "status": "not_ready",
                "ready": False,
            },
            status=503,
        )

    return web.json_response(
        {
            "status": "ready",
            "ready": True,
        }
    )


async def blockchain_handler(request: web.Request) -> web.Response:
    """
    Blockchain health endpoint.

    Returns:
        JSON response with per-network status; 503 if any network is unhealthy
    """
    if _blockchain_client is None:
        return web.json_response(
            {
                "status": "unhealthy",
                "error": "Blockchain client not initialized",
            },
            status=503,
        )

    networks = await _blockchain_client.health_check()
    healthy = all(result["status"] == "healthy" for result in networks.values())
    return web.json_response(
        {
            "status": "healthy" if healthy else "degraded",
            "networks": networks,
        },
        status=200 if healthy else 503,
    )


def create_health_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/health/ready", readiness_handler)
    app.router.add_get("/health/blockchain", blockchain_handler)
    return app


async def start_health_server(
    host: str = "0.0.0.0",
    port: int = 8081,
) -> tuple[web.AppRunner, web.TCPSite]:
    """
    Start health check server.

    Args:
        host: Host to bind to
        port: Port to bind to

    Returns:
        Tuple of (AppRunner, TCPSite) for cleanup
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    logger.info(f"  - Health: http://{host}:{port}/health")
    logger.info(f"  - Readiness: http://{host}:{port}/health/ready")
    logger.info(f"  - Blockchain: http://{host}:{port}/health/blockchain")

    return runner, site


async def stop_health_server(
    runner: web.AppRunner,
    timeout: int = 5,
) -> None:
    """
    Stop health check server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    logger.info("Stopping health check server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Health check server stopped successfully")
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
