"""
Worker scheduler.

Runs the sync workers as independent periodic jobs in one process:
- event scan every SCAN_INTERVAL_SECONDS
- pending mint sweep every PENDING_SWEEP_INTERVAL_SECONDS
- gap reconciliation every RECONCILE_INTERVAL_HOURS
- quest listener as a long-lived task

Each interval job runs at most one instance at a time; a missed run is
coalesced into one. A failing worker never stops the others.

Usage:
    python -m jobs.scheduler
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks import (
    run_event_scan,
    run_gap_reconciliation,
    run_pending_sweep,
    run_quest_listener,
)
from mintsync.config.logging import setup_logging
from mintsync.config.settings import settings

JOB_DEFAULTS = {"max_instances": 1, "coalesce": True, "misfire_grace_time": 60}


def build_scheduler() -> AsyncIOScheduler:
    """
    Scheduler with the periodic worker jobs registered (not started).

    Returns:
        AsyncIOScheduler
    """
    scheduler = AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)

    scheduler.add_job(
        run_event_scan,
        IntervalTrigger(seconds=settings.scan_interval_seconds),
        id="event_scan",
        name="Incremental event scan",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        run_pending_sweep,
        IntervalTrigger(seconds=settings.pending_sweep_interval_seconds),
        id="pending_mint_sweep",
        name="Pending mint sweep",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        run_gap_reconciliation,
        IntervalTrigger(hours=settings.reconcile_interval_hours),
        id="gap_reconcile",
        name="Gap reconciliation",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler


async def main() -> None:
    """Run the scheduler until SIGINT/SIGTERM."""
    setup_logging()
    logger.info(f"[Scheduler] Starting ({settings.environment})")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    scheduler = build_scheduler()
    scheduler.start()
    set_scheduler(scheduler)

    health_runner = await start_health_server(port=settings.health_check_port)
    quest_task = asyncio.create_task(run_quest_listener(stop_event), name="quest_listener")

    try:
        await stop_event.wait()
    finally:
        logger.info("[Scheduler] Shutting down...")
        scheduler.shutdown(wait=False)
        set_scheduler(None)
        await quest_task
        await stop_health_server(health_runner)
        logger.info("[Scheduler] Stopped")


if __name__ == "__main__":
    asyncio.run(main())
