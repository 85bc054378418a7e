"""
Health check server for the sync workers.

Reports the scheduler state and the outcome of each worker's last run.
"""

import asyncio
import json
from datetime import datetime
from typing import Any

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from mintsync.utils.datetime_utils import utc_now

_scheduler: AsyncIOScheduler | None = None

# worker name -> {"at": datetime, "success": bool, "stats": dict}
_last_runs: dict[str, dict[str, Any]] = {}


def set_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """
    Register the scheduler instance for health checks.

    Args:
        scheduler: AsyncIOScheduler instance to monitor (None to clear)
    """
    global _scheduler
    _scheduler = scheduler
    if scheduler is not None:
        logger.info("[Scheduler] Registered for health checks")


def record_run(worker: str, stats: dict) -> None:
    """
    Remember the result of a worker run.

    Args:
        worker: Worker name
        stats: Stats dict returned by the worker
    """
    _last_runs[worker] = {
        "at": utc_now(),
        "success": bool(stats.get("success", True)),
        "stats": stats,
    }


def get_last_runs() -> dict[str, dict[str, Any]]:
    """Last recorded run per worker."""
    return dict(_last_runs)


def _dumps(payload: Any) -> str:
    return json.dumps(payload, default=str)


def _serialize_run(run: dict[str, Any]) -> dict[str, Any]:
    at: datetime = run["at"]
    return {
        "at": at.isoformat(),
        "success": run["success"],
        "stats": {k: v for k, v in run["stats"].items() if k != "gap_ids"},
    }


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with scheduler status, jobs and last worker runs
    """
    if _scheduler is None:
        return web.json_response(
            {"status": "unhealthy", "error": "Scheduler not initialized"},
            status=503,
        )

    jobs = _scheduler.get_jobs()
    job_info = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in jobs
    ]
    is_running = _scheduler.running

    return web.json_response(
        {
            "status": "healthy" if is_running else "stopped",
            "scheduler_running": is_running,
            "jobs_count": len(jobs),
            "jobs": job_info,
            "workers": {name: _serialize_run(run) for name, run in _last_runs.items()},
        },
        dumps=_dumps,
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """
    Readiness check endpoint.

    Returns:
        JSON response indicating if the scheduler is running
    """
    if _scheduler is None or not _scheduler.running:
        return web.json_response({"status": "not_ready", "ready": False}, status=503)
    return web.json_response({"status": "ready", "ready": True})


async def liveness_handler(request: web.Request) -> web.Response:
    """Liveness check endpoint."""
    return web.json_response({"status": "alive", "alive": True})


def create_health_app() -> web.Application:
    """Application with /health, /readiness and /liveness routes."""
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    host: str = "0.0.0.0",
    port: int = 8081,
) -> web.AppRunner:
    """
    Start health check server.

    Args:
        host: Host to bind to
        port: Port to bind to

    Returns:
        AppRunner for cleanup
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"[Scheduler] Health check server started on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """
    Stop health check server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("[Scheduler] Health check server stopped")
    except TimeoutError:
        logger.warning(f"[Scheduler] Health server cleanup timed out after {timeout}s")
