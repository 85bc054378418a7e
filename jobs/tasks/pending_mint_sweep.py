"""
Pending mint sweep task.

Re-attempts queued mints on a short fixed interval.
"""

import dramatiq
from loguru import logger

import jobs.broker  # noqa: F401
from jobs.async_runner import run_async
from jobs.health import record_run
from jobs.utils.database import task_session
from mintsync.config.settings import settings
from mintsync.services.ledger import create_ledger_reader
from mintsync.services.metadata_normalizer import create_metadata_resolver
from mintsync.services.pending_mint_service import PendingMintService, SweepPolicy


def sweep_policy_from_settings() -> SweepPolicy:
    """Sweep policy from application settings."""
    return SweepPolicy(
        batch_size=settings.pending_sweep_batch_size,
        claim_lease_seconds=settings.pending_claim_lease_seconds,
        alert_after_attempts=settings.pending_alert_after_attempts,
        retry_delay_seconds=settings.pending_retry_delay_seconds,
    )


@dramatiq.actor(max_retries=0, time_limit=300_000)  # 5 min
def sweep_pending_mints() -> None:
    """Run one pending mint sweep on demand."""
    run_async(run_pending_sweep())


async def run_pending_sweep() -> dict:
    """
    Sweep the pending mint queue once.

    Overlapping sweeps are safe: entries are claimed exclusively.

    Returns:
        Sweep stats dict
    """
    reader = create_ledger_reader()
    resolver = create_metadata_resolver()

    try:
        async with task_session() as session:
            service = PendingMintService(
                session, reader, resolver, policy=sweep_policy_from_settings()
            )
            stats = await service.process_pending_mints()
    except Exception as e:
        logger.exception(f"[PendingMint] Sweep failed: {e}")
        stats = {"success": False, "error": str(e)}
    finally:
        await resolver.close()
        reader.cleanup()

    record_run("pending_mint_sweep", stats)
    return stats
