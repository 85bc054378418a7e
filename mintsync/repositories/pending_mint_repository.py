"""
Pending Mint repository.

Data access layer for the durable retry queue of mints whose metadata
could not be fetched at ingestion time.
"""

import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.config.constants import PENDING_ERROR_MAX_LENGTH
from mintsync.models.pending_mint import PendingMint
from mintsync.repositories.base import BaseRepository
from mintsync.utils.datetime_utils import utc_now


def _truncate_error(error: str | None) -> str | None:
    if error is None:
        return None
    return error[:PENDING_ERROR_MAX_LENGTH]


class PendingMintRepository(BaseRepository[PendingMint]):
    """Repository for pending mint entries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(PendingMint, session)

    async def enqueue(
        self,
        contract_address: str,
        token_id: str,
        owner_address: str,
        transaction_hash: str | None,
        error: str | None,
    ) -> bool:
        """
        Add a mint to the retry queue unless it is already queued.

        Args:
            contract_address: Lowercased contract address
            token_id: Token ID
            owner_address: Owner at mint time
            transaction_hash: Mint transaction hash
            error: Why the metadata fetch failed

        Returns:
            True if a new entry was created
        """
        stmt = (
            insert(PendingMint)
            .values(
                contract_address=contract_address,
                token_id=str(token_id),
                owner_address=owner_address.lower(),
                transaction_hash=transaction_hash,
                retry_count=0,
                last_error=_truncate_error(error),
                last_attempt_at=utc_now(),
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(
                index_elements=[PendingMint.contract_address, PendingMint.token_id]
            )
            .returning(PendingMint.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def claim_batch(
        self, limit: int, lease_seconds: int
    ) -> list[PendingMint]:
        """
        Exclusively claim up to `limit` entries for one sweep.

        Rows locked by a concurrent claimer are skipped, and rows whose
        claim is younger than the lease are not eligible. Every entry
        claimed by this call shares one claim token.

        Args:
            limit: Max entries to claim
            lease_seconds: Claim lease; older claims are re-claimable

        Returns:
            Claimed entries (caller must commit to publish the claim)
        """
        now = utc_now()
        lease_cutoff = now - timedelta(seconds=lease_seconds)
        claim_token = str(uuid.uuid4())

        candidates = (
            select(PendingMint.id)
            .where(
                or_(
                    PendingMint.claimed_at.is_(None),
                    PendingMint.claimed_at < lease_cutoff,
                )
            )
            .order_by(PendingMint.last_attempt_at.asc().nulls_first(), PendingMint.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(PendingMint)
            .where(PendingMint.id.in_(candidates))
            .values(claimed_at=now, claim_token=claim_token)
            .returning(PendingMint)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def record_failure(
        self,
        entry_id: int,
        claim_token: str,
        expected_retry_count: int,
        error: str,
    ) -> bool:
        """
        Record a failed attempt and release the claim.

        Compare-and-swap on `retry_count` and `claim_token`: if another
        sweep took over the entry in the meantime nothing is written.

        Args:
            entry_id: Pending entry ID
            claim_token: Token this sweep claimed the entry with
            expected_retry_count: retry_count seen at claim time
            error: Error message

        Returns:
            True if the entry was updated
        """
        stmt = (
            update(PendingMint)
            .where(
                PendingMint.id == entry_id,
                PendingMint.claim_token == claim_token,
                PendingMint.retry_count == expected_retry_count,
            )
            .values(
                retry_count=PendingMint.retry_count + 1,
                last_error=_truncate_error(error),
                last_attempt_at=utc_now(),
                claimed_at=None,
                claim_token=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def resolve(self, entry_id: int, claim_token: str) -> bool:
        """
        Delete a claimed entry after its NFT record was written.

        Args:
            entry_id: Pending entry ID
            claim_token: Token this sweep claimed the entry with

        Returns:
            True if the entry was deleted
        """
        stmt = delete(PendingMint).where(
            PendingMint.id == entry_id,
            PendingMint.claim_token == claim_token,
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def delete_by_token(self, contract_address: str, token_id: str) -> int:
        """
        Drop the entry for a token that now has an NFT record.

        Args:
            contract_address: Lowercased contract address
            token_id: Token ID

        Returns:
            Number of deleted entries (0 or 1)
        """
        stmt = delete(PendingMint).where(
            PendingMint.contract_address == contract_address,
            PendingMint.token_id == str(token_id),
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def get_all_pending(
        self, contract_address: str | None = None
    ) -> list[PendingMint]:
        """Get every entry, oldest first."""
        stmt = select(PendingMint).order_by(PendingMint.created_at, PendingMint.id)
        if contract_address:
            stmt = stmt.where(PendingMint.contract_address == contract_address)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_attention_required(self, threshold: int) -> list[PendingMint]:
        """
        Entries that have failed at least `threshold` times.

        Args:
            threshold: Retry count at which an entry needs an operator

        Returns:
            Entries ordered by retry count, highest first
        """
        stmt = (
            select(PendingMint)
            .where(PendingMint.retry_count >= threshold)
            .order_by(PendingMint.retry_count.desc(), PendingMint.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_queue_stats(
        self, threshold: int, lease_seconds: int
    ) -> dict:
        """
        Aggregate queue statistics in one query.

        Args:
            threshold: Attention-required retry count
            lease_seconds: Claim lease

        Returns:
            Dict with total, claimed, attention_required, max_retry_count,
            oldest_attempt_at
        """
        lease_cutoff = utc_now() - timedelta(seconds=lease_seconds)
        stmt = select(
            func.count(PendingMint.id),
            func.count(PendingMint.id).filter(PendingMint.claimed_at >= lease_cutoff),
            func.count(PendingMint.id).filter(PendingMint.retry_count >= threshold),
            func.max(PendingMint.retry_count),
            func.min(PendingMint.last_attempt_at),
        )
        result = await self.session.execute(stmt)
        total, claimed, attention, max_retry, oldest = result.one()

        oldest_attempt_at: datetime | None = oldest
        return {
            "total": total or 0,
            "claimed": claimed or 0,
            "attention_required": attention or 0,
            "max_retry_count": max_retry or 0,
            "oldest_attempt_at": oldest_attempt_at,
        }
