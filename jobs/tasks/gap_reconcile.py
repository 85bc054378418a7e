"""
Gap reconciliation task.

Long-interval (or on-demand) verification of the ledger's live token
set against the store.
"""

import dramatiq
from loguru import logger

import jobs.broker  # noqa: F401
from jobs.async_runner import run_async
from jobs.health import record_run
from jobs.utils.database import task_session
from mintsync.config.settings import settings
from mintsync.services.ingestion import TokenFetcher
from mintsync.services.ledger import LedgerReader, create_ledger_reader
from mintsync.services.metadata_normalizer import (
    MetadataResolver,
    create_metadata_resolver,
)
from mintsync.services.token_discovery import (
    GapReconciler,
    TokenDiscovery,
    TokenProber,
)


def build_reconciler(
    session,
    reader: LedgerReader,
    resolver: MetadataResolver,
    contract_address: str,
) -> GapReconciler:
    """Wire a reconciler for one contract from application settings."""
    prober = TokenProber(
        reader,
        contract_address,
        absence_confirmations=settings.absence_confirmations,
        max_attempts=settings.probe_max_attempts,
        retry_delay=settings.reconcile_scan_delay,
    )
    discovery = TokenDiscovery(prober, upper_bound=settings.discovery_upper_bound)
    fetcher = TokenFetcher(reader, resolver, contract_address)
    return GapReconciler(
        session, discovery, fetcher, scan_delay=settings.reconcile_scan_delay
    )


@dramatiq.actor(max_retries=0, time_limit=3_600_000)  # 1 hour
def reconcile_gaps(
    contract_address: str | None = None,
    upper_bound: int | None = None,
    dry_run: bool = False,
) -> None:
    """Run gap reconciliation on demand."""
    run_async(run_gap_reconciliation(contract_address, upper_bound, dry_run))


async def run_gap_reconciliation(
    contract_address: str | None = None,
    upper_bound: int | None = None,
    dry_run: bool = False,
) -> dict:
    """
    Reconcile one contract.

    Args:
        contract_address: Contract (default: configured NFT contract)
        upper_bound: Initial discovery bound override
        dry_run: Only report the gap set

    Returns:
        Reconciliation stats dict
    """
    contract = (contract_address or settings.nft_contract_address).lower()
    reader = create_ledger_reader()
    resolver = create_metadata_resolver()

    try:
        async with task_session() as session:
            reconciler = build_reconciler(session, reader, resolver, contract)
            stats = await reconciler.reconcile(upper_bound=upper_bound, dry_run=dry_run)
            stats["success"] = True
    except Exception as e:
        logger.exception(f"[Discovery] Reconciliation failed: {e}")
        stats = {"success": False, "error": str(e)}
    finally:
        await resolver.close()
        reader.cleanup()

    record_run("gap_reconcile", stats)
    return stats
