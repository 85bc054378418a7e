"""
Pending Mint Service - Core Module.

Module: core.py
Holds the repositories, the sweep policy and queue entry creation.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.config.constants import (
    PENDING_ALERT_AFTER_ATTEMPTS,
    PENDING_CLAIM_LEASE_SECONDS,
    PENDING_RETRY_DELAY_SECONDS,
    PENDING_SWEEP_BATCH_SIZE,
)
from mintsync.models.pending_mint import PendingMint
from mintsync.repositories.nft_repository import NFTRepository
from mintsync.repositories.pending_mint_repository import PendingMintRepository
from mintsync.utils.security import mask_address


@dataclass(frozen=True)
class SweepPolicy:
    """
    Sweep configuration.

    There is no retry ceiling: an entry is retried every sweep until it
    resolves. Reaching `alert_after_attempts` escalates it to operators.
    """

    batch_size: int = PENDING_SWEEP_BATCH_SIZE
    claim_lease_seconds: int = PENDING_CLAIM_LEASE_SECONDS
    alert_after_attempts: int = PENDING_ALERT_AFTER_ATTEMPTS
    retry_delay_seconds: float = PENDING_RETRY_DELAY_SECONDS


@dataclass(frozen=True)
class ClaimedMint:
    """
    Detached copy of a claimed queue entry.

    A sweep works on these instead of ORM rows: a rollback after one
    entry's store error expires every row in the session, and reading an
    expired attribute would need an async refresh.
    """

    id: int
    token_id: str
    contract_address: str
    owner_address: str
    transaction_hash: str | None
    retry_count: int
    claim_token: str | None

    @classmethod
    def from_row(cls, row: PendingMint) -> "ClaimedMint":
        return cls(
            id=row.id,
            token_id=row.token_id,
            contract_address=row.contract_address,
            owner_address=row.owner_address,
            transaction_hash=row.transaction_hash,
            retry_count=row.retry_count,
            claim_token=row.claim_token,
        )


class PendingMintCore:
    """Core queue management."""

    def __init__(
        self, session: AsyncSession, policy: SweepPolicy | None = None
    ) -> None:
        """Initialize core components."""
        self.session = session
        self.policy = policy or SweepPolicy()
        self.pending_repo = PendingMintRepository(session)
        self.nft_repo = NFTRepository(session)

    async def enqueue(
        self,
        contract_address: str,
        token_id: str,
        owner_address: str,
        transaction_hash: str | None,
        error: str,
    ) -> bool:
        """
        Queue a mint whose metadata could not be fetched.

        Args:
            contract_address: Contract address
            token_id: Token ID
            owner_address: Mint recipient
            transaction_hash: Mint transaction hash
            error: Failure description

        Returns:
            True if a new entry was created
        """
        contract = contract_address.lower()
        if await self.nft_repo.get_by_token(contract, token_id) is not None:
            logger.info(f"[PendingMint] Token #{token_id} already stored, not queued")
            return False

        created = await self.pending_repo.enqueue(
            contract, token_id, owner_address, transaction_hash, error
        )
        await self.session.commit()

        if created:
            logger.info(
                f"[PendingMint] Queued token #{token_id} of "
                f"{mask_address(contract)}: {error}"
            )
        return created
