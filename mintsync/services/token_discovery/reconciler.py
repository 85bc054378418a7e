"""
Token Discovery - Gap Reconciler Module.

Module: reconciler.py
Verifies every ID in [1, highest] against the ledger and inserts the
live IDs missing from the store. Safe to re-run at any time: it only
ever inserts absent records.
"""

import asyncio
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.config.constants import RECONCILE_SCAN_DELAY
from mintsync.repositories.nft_repository import NFTRepository
from mintsync.repositories.pending_mint_repository import PendingMintRepository
from mintsync.services.ingestion import (
    FETCH_ERRORS,
    NFTWriter,
    TokenFetcher,
    describe_error,
)
from mintsync.utils.exceptions import InvariantViolationError
from mintsync.utils.security import mask_address

from .discovery import TokenDiscovery
from .prober import TokenProber


@dataclass
class LiveSetScan:
    """Result of the exhaustive scan."""

    live: dict[int, str] = field(default_factory=dict)  # token_id -> owner
    absent: set[int] = field(default_factory=set)
    unresolved: set[int] = field(default_factory=set)


class GapReconciler:
    """
    Gap reconciliation for one contract.

    Usage:
        reconciler = GapReconciler(session, discovery, fetcher)
        stats = await reconciler.reconcile()
    """

    def __init__(
        self,
        session: AsyncSession,
        discovery: TokenDiscovery,
        fetcher: TokenFetcher,
        scan_delay: float = RECONCILE_SCAN_DELAY,
    ) -> None:
        """
        Initialize reconciler.

        Args:
            session: Database session
            discovery: Highest-token discovery for the contract
            fetcher: Metadata fetcher for the same contract
            scan_delay: Fixed delay between exhaustive-scan calls
        """
        self.session = session
        self.discovery = discovery
        self.prober: TokenProber = discovery.prober
        self.fetcher = fetcher
        self.contract_address = discovery.contract_address
        self.scan_delay = scan_delay

        self.nft_repo = NFTRepository(session)
        self.pending_repo = PendingMintRepository(session)
        self.writer = NFTWriter(session)

    async def scan_live_set(self, highest: int) -> LiveSetScan:
        """
        Probe every ID in [1, highest].

        An ID joins `absent` only after the configured number of
        definitive reverts; inconclusive IDs land in `unresolved` and
        are neither inserted nor treated as absent.

        Args:
            highest: Highest live ID from discovery

        Returns:
            LiveSetScan
        """
        scan = LiveSetScan()

        for token_id in range(1, highest + 1):
            if token_id > 1 and self.scan_delay:
                await asyncio.sleep(self.scan_delay)

            result = await self.prober.probe(token_id)
            if result.exists:
                scan.live[token_id] = result.owner
            elif result.absent:
                scan.absent.add(token_id)
            else:
                scan.unresolved.add(token_id)

        logger.info(
            f"[Discovery] Scan of [1, {highest}]: {len(scan.live)} live, "
            f"{len(scan.absent)} absent, {len(scan.unresolved)} unresolved"
        )
        return scan

    async def find_gaps(self, scan: LiveSetScan) -> list[int]:
        """
        Live IDs with no NFT record.

        Args:
            scan: Exhaustive scan result

        Returns:
            Sorted gap IDs
        """
        stored = await self.nft_repo.get_token_ids(self.contract_address)
        # Release the read transaction before any further ledger call
        await self.session.commit()
        return sorted(t for t in scan.live if str(t) not in stored)

    async def reconcile(
        self, upper_bound: int | None = None, dry_run: bool = False
    ) -> dict:
        """
        Full reconciliation pass.

        Args:
            upper_bound: Initial discovery bound override
            dry_run: Report the gap set without writing

        Returns:
            Dict with highest, live, absent, unresolved, gaps, inserted,
            already_stored, pending, failed and gap_ids
        """
        contract = mask_address(self.contract_address)
        logger.info(f"[Discovery] Reconciling {contract}")

        discovery = await self.discovery.discover_highest(upper_bound)
        scan = await self.scan_live_set(discovery.highest)
        gaps = await self.find_gaps(scan)

        stats = {
            "highest": discovery.highest,
            "probes": discovery.probes,
            "live": len(scan.live),
            "absent": len(scan.absent),
            "unresolved": sorted(scan.unresolved),
            "gaps": len(gaps),
            "gap_ids": gaps,
            "inserted": 0,
            "already_stored": 0,
            "pending": 0,
            "failed": 0,
        }

        if dry_run:
            logger.info(f"[Discovery] Dry run: {len(gaps)} gaps in {contract}: {gaps}")
            return stats

        for token_id in gaps:
            outcome = await self._reconcile_token_safe(token_id, scan.live[token_id])
            stats[outcome] += 1

        logger.success(
            f"[Discovery] Reconciled {contract}: {stats['inserted']} inserted, "
            f"{stats['pending']} pending, {stats['failed']} failed "
            f"of {len(gaps)} gaps"
        )
        return stats

    async def _reconcile_token_safe(self, token_id: int, owner: str) -> str:
        """
        Reconcile one gap ID, isolating its failure.

        Returns:
            One of: 'inserted', 'already_stored', 'pending', 'failed'
        """
        try:
            return await self._reconcile_token(token_id, owner)
        except InvariantViolationError:
            await self.session.rollback()
            return "failed"
        except Exception as e:
            await self.session.rollback()
            logger.error(f"[Discovery] Token #{token_id} reconciliation failed: {e}")
            return "failed"

    async def _reconcile_token(self, token_id: int, owner: str) -> str:
        try:
            metadata = await self.fetcher.fetch(token_id)
        except FETCH_ERRORS as e:
            error = describe_error(e)
            # No mint event is available here: the current owner stands in
            # for the mint recipient
            await self.pending_repo.enqueue(
                self.contract_address, str(token_id), owner, None, error
            )
            await self.session.commit()
            logger.warning(
                f"[Discovery] Token #{token_id} routed to pending queue: {error}"
            )
            return "pending"

        inserted = await self.writer.store(
            self.contract_address,
            metadata,
            owner_address=owner,
            creator_address=owner,
            transaction_hash=None,
        )
        await self.pending_repo.delete_by_token(self.contract_address, str(token_id))
        await self.session.commit()

        if inserted:
            logger.info(f"[Discovery] Token #{token_id} inserted: {metadata.title}")
            return "inserted"
        return "already_stored"
