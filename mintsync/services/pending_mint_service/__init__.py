"""
Pending Mint Service - Main Module.

Durable retry queue for mints whose metadata could not be fetched at
ingestion time. A scheduled sweep re-reads each entry from the ledger
and either resolves it into an NFT record or records the failure.

Module Structure:
- core.py: Sweep policy, repositories and enqueueing
- processor.py: Claim / ledger phase / resolve-or-fail sweep
- stats.py: Queue statistics and attention list

Public Interface:
- PendingMintService: Main service class
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.services.ledger import LedgerReader
from mintsync.services.metadata_normalizer import MetadataResolver

from .core import PendingMintCore, SweepPolicy
from .processor import PendingMintProcessor
from .stats import PendingMintStatsManager


class PendingMintService:
    """Pending-mint retry queue."""

    def __init__(
        self,
        session: AsyncSession,
        reader: LedgerReader,
        resolver: MetadataResolver,
        policy: SweepPolicy | None = None,
    ) -> None:
        """Initialize pending mint service."""
        self.session = session

        self.core = PendingMintCore(session, policy)
        self.processor = PendingMintProcessor(self.core, reader, resolver)
        self.stats_manager = PendingMintStatsManager(
            self.core.pending_repo, self.core.policy
        )

        self.pending_repo = self.core.pending_repo

    async def enqueue(self, *args, **kwargs) -> bool:
        """Queue a mint whose metadata fetch failed."""
        return await self.core.enqueue(*args, **kwargs)

    async def process_pending_mints(self) -> dict:
        """Run one sweep."""
        return await self.processor.process_pending_mints()

    async def get_queue_stats(self) -> dict:
        """Get queue statistics."""
        return await self.stats_manager.get_queue_stats()

    async def get_attention_required(self):
        """Entries that need operator attention."""
        return await self.stats_manager.get_attention_required()


__all__ = ["PendingMintService", "SweepPolicy"]
