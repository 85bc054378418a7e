"""
Event scan task.

Incremental catch-up of NFT Transfer events from the checkpoint to the
confirmed chain head.
"""

import dramatiq
from loguru import logger

import jobs.broker  # noqa: F401
from jobs.async_runner import run_async
from jobs.health import record_run
from jobs.utils.database import task_session
from mintsync.config.settings import settings
from mintsync.services.event_scanner import EventScanner
from mintsync.services.ingestion import TokenFetcher
from mintsync.services.ledger import create_ledger_reader
from mintsync.services.metadata_normalizer import create_metadata_resolver


@dramatiq.actor(max_retries=0, time_limit=600_000)  # 10 min
def scan_nft_events() -> None:
    """Run one event scan on demand."""
    run_async(run_event_scan())


async def run_event_scan() -> dict:
    """
    Scan the NFT contract once.

    Never raises: a failed run is logged and retried on the next
    interval from the unchanged checkpoint.

    Returns:
        Scanner stats dict
    """
    reader = create_ledger_reader()
    resolver = create_metadata_resolver()

    try:
        async with task_session() as session:
            fetcher = TokenFetcher(reader, resolver, settings.nft_contract_address)
            scanner = EventScanner(
                session,
                reader,
                fetcher,
                chunk_size=settings.scan_chunk_size,
                block_confirmations=settings.block_confirmations,
                start_block=settings.sync_start_block,
            )
            stats = await scanner.scan()
    except Exception as e:
        logger.exception(f"[Scanner] Event scan failed: {e}")
        stats = {"success": False, "error": str(e)}
    finally:
        await resolver.close()
        reader.cleanup()

    record_run("event_scan", stats)
    return stats
