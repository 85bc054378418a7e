"""
Pending Mint Service - Processor Module.

Module: processor.py
One sweep: claim a batch, re-read each entry from the ledger outside
any store transaction, then resolve it or record the failure.
"""

import asyncio

from loguru import logger

from mintsync.services.ingestion import (
    FETCH_ERRORS,
    NFTWriter,
    TokenFetcher,
    describe_error,
)
from mintsync.services.ledger import LedgerReader
from mintsync.services.metadata_normalizer import MetadataResolver

from .core import ClaimedMint, PendingMintCore


class PendingMintProcessor:
    """Sweep processing logic."""

    def __init__(
        self,
        core: PendingMintCore,
        reader: LedgerReader,
        resolver: MetadataResolver,
    ) -> None:
        """Initialize processor with core components."""
        self.core = core
        self.session = core.session
        self.pending_repo = core.pending_repo
        self.policy = core.policy
        self.reader = reader
        self.resolver = resolver
        self.writer = NFTWriter(core.session)

    async def process_pending_mints(self) -> dict:
        """
        Run one sweep.

        Called by the scheduler on a fixed interval.

        Returns:
            Dict with processed, resolved, failed, lost_claim, escalated
        """
        rows = await self.pending_repo.claim_batch(
            self.policy.batch_size, self.policy.claim_lease_seconds
        )
        entries = [ClaimedMint.from_row(row) for row in rows]
        # Publish the claim before any ledger call
        await self.session.commit()

        if not entries:
            return self._create_empty_stats()

        logger.info(f"[PendingMint] Retrying {len(entries)} pending mints...")

        stats = self._create_empty_stats()
        for index, entry in enumerate(entries):
            if index and self.policy.retry_delay_seconds:
                await asyncio.sleep(self.policy.retry_delay_seconds)

            result = await self._process_entry_safe(entry)
            stats["processed"] += 1
            if result == "escalated":
                stats["escalated"] += 1
                result = "failed"
            stats[result] += 1

        logger.info(
            f"[PendingMint] Sweep complete: {stats['resolved']} resolved, "
            f"{stats['failed']} failed, {stats['lost_claim']} lost claims "
            f"out of {stats['processed']}"
        )
        return stats

    async def _process_entry_safe(self, entry: ClaimedMint) -> str:
        """
        Process one claimed entry with error handling.

        Returns:
            One of: 'resolved', 'failed', 'escalated', 'lost_claim'
        """
        try:
            return await self._process_entry(entry)
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"[PendingMint] Error processing token #{entry.token_id}: {e}. "
                "Claim released at lease expiry"
            )
            return "failed"

    async def _process_entry(self, entry: ClaimedMint) -> str:
        token_id = entry.token_id
        contract = entry.contract_address

        fetcher = TokenFetcher(self.reader, self.resolver, contract)
        logger.info(
            f"[PendingMint] Retrying token #{token_id} (attempt {entry.retry_count + 1})"
        )

        try:
            owner = await self.reader.owner_of(contract, token_id)
            metadata = await fetcher.fetch(token_id, max_retries=1)
        except FETCH_ERRORS as e:
            return await self._record_failure(entry, describe_error(e))

        await self.writer.store(
            contract,
            metadata,
            owner_address=owner,
            creator_address=entry.owner_address,
            transaction_hash=entry.transaction_hash,
        )
        deleted = await self.pending_repo.resolve(entry.id, entry.claim_token)
        await self.session.commit()

        if not deleted:
            logger.warning(
                f"[PendingMint] Token #{token_id} stored but its claim was taken "
                "over; the new claimer will resolve the entry"
            )
        logger.success(f"[PendingMint] Token #{token_id} resolved: {metadata.title}")
        return "resolved"

    async def _record_failure(self, entry: ClaimedMint, error: str) -> str:
        """
        Compare-and-swap the failure onto the claimed entry.

        Returns:
            'escalated' on the failure that reaches the alert threshold,
            otherwise 'failed' (or 'lost_claim' if the CAS missed)
        """
        updated = await self.pending_repo.record_failure(
            entry.id, entry.claim_token, entry.retry_count, error
        )
        await self.session.commit()

        if not updated:
            logger.warning(
                f"[PendingMint] Token #{entry.token_id}: claim lost, failure not recorded"
            )
            return "lost_claim"

        new_count = entry.retry_count + 1
        if new_count == self.policy.alert_after_attempts:
            logger.critical(
                f"[PendingMint] Token #{entry.token_id} has failed {new_count} times "
                f"and needs operator attention. Last error: {error}"
            )
            return "escalated"

        logger.warning(
            f"[PendingMint] Token #{entry.token_id} still pending "
            f"(retry {new_count}): {error}"
        )
        return "failed"

    def _create_empty_stats(self) -> dict:
        """Create empty statistics dict."""
        return {
            "processed": 0,
            "resolved": 0,
            "failed": 0,
            "lost_claim": 0,
            "escalated": 0,
        }
