"""
Incremental Event Scanner.

Reads Transfer logs from `checkpoint + 1` to the confirmed chain head in
fixed-size chunks. Each chunk is written, together with its checkpoint
advance, in a single transaction.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.config.constants import SCAN_CHUNK_SIZE, SCAN_PROGRESS_LOG_EVERY
from mintsync.repositories.nft_repository import NFTRepository
from mintsync.repositories.pending_mint_repository import PendingMintRepository
from mintsync.services.checkpoint_service import CheckpointTracker
from mintsync.services.ingestion import (
    FETCH_ERRORS,
    NFTWriter,
    TokenFetcher,
    describe_error,
)
from mintsync.services.ledger import LedgerReader, TransferEvent
from mintsync.services.metadata_normalizer import NormalizedMetadata
from mintsync.utils.db_decorators import with_rollback_on_error
from mintsync.utils.exceptions import LedgerError
from mintsync.utils.security import mask_address


class EventScanner:
    """
    Event-scan worker for one NFT contract.

    Key features:
    - Resumes from the persisted checkpoint
    - No store transaction is open while the ledger is being read
    - Mints whose metadata cannot be fetched go to the pending queue
    - Transfers update the owner, never the creator
    """

    def __init__(
        self,
        session: AsyncSession,
        reader: LedgerReader,
        fetcher: TokenFetcher,
        chunk_size: int = SCAN_CHUNK_SIZE,
        block_confirmations: int = 0,
        start_block: int = 0,
    ) -> None:
        """
        Initialize scanner.

        Args:
            session: Database session
            reader: Ledger reader
            fetcher: Metadata fetcher for the contract
            chunk_size: Blocks per getLogs request
            block_confirmations: Blocks behind head treated as not final
            start_block: First block when the checkpoint is empty
        """
        self.session = session
        self.reader = reader
        self.fetcher = fetcher
        self.contract_address = fetcher.contract_address
        self.chunk_size = chunk_size
        self.block_confirmations = block_confirmations
        self.start_block = start_block

        self.tracker = CheckpointTracker(session)
        self.nft_repo = NFTRepository(session)
        self.pending_repo = PendingMintRepository(session)
        self.writer = NFTWriter(session)

    async def scan(self) -> dict:
        """
        Catch up from the checkpoint to the confirmed head.

        Returns:
            Dict with success, from_block, to_block, chunks, minted,
            pending, transfers (and error on failure)
        """
        checkpoint = await self.tracker.get_checkpoint(self.contract_address)
        await self.session.commit()

        head = await self.reader.block_number() - self.block_confirmations
        from_block = max(checkpoint + 1, self.start_block)

        stats = {
            "success": True,
            "from_block": from_block,
            "to_block": head,
            "chunks": 0,
            "minted": 0,
            "pending": 0,
            "transfers": 0,
        }

        if from_block > head:
            return stats

        total_blocks = head - from_block + 1
        logger.info(
            f"[Scanner] {mask_address(self.contract_address)}: "
            f"{total_blocks} blocks ({from_block} -> {head})"
        )

        chunk_start = from_block
        while chunk_start <= head:
            chunk_end = min(chunk_start + self.chunk_size - 1, head)

            try:
                chunk_stats = await self.process_chunk(chunk_start, chunk_end)
            except LedgerError as e:
                logger.warning(
                    f"[Scanner] Chunk {chunk_start}-{chunk_end} not read: {e}. "
                    "Will resume from the checkpoint next run"
                )
                stats.update(success=False, to_block=chunk_start - 1, error=str(e))
                return stats
            except Exception as e:
                logger.error(f"[Scanner] Chunk {chunk_start}-{chunk_end} failed: {e}")
                stats.update(success=False, to_block=chunk_start - 1, error=str(e))
                return stats

            stats["chunks"] += 1
            for key in ("minted", "pending", "transfers"):
                stats[key] += chunk_stats[key]

            if stats["chunks"] % SCAN_PROGRESS_LOG_EVERY == 0:
                progress = (chunk_end - from_block + 1) / total_blocks * 100
                logger.info(
                    f"[Scanner] Progress: {progress:.1f}% "
                    f"({stats['minted']} minted, {stats['pending']} pending)"
                )

            chunk_start = chunk_end + 1

        logger.success(
            f"[Scanner] Synced to block {head}: {stats['minted']} minted, "
            f"{stats['pending']} pending, {stats['transfers']} transfers"
        )
        return stats

    @with_rollback_on_error
    async def process_chunk(self, from_block: int, to_block: int) -> dict:
        """
        Read one block range and commit it with its checkpoint.

        Args:
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            Dict with minted, pending, transfers
        """
        # Ledger phase
        events = await self.reader.get_transfer_events(
            self.contract_address, from_block, to_block
        )
        mints = [e for e in events if e.is_mint]
        stored = await self.nft_repo.get_existing_token_ids(
            self.contract_address, [m.token_id for m in mints]
        )
        await self.session.commit()

        fetched: dict[str, NormalizedMetadata] = {}
        failed: dict[str, str] = {}
        for mint in mints:
            if mint.token_id in stored or mint.token_id in fetched:
                continue
            try:
                fetched[mint.token_id] = await self.fetcher.fetch(mint.token_id)
            except FETCH_ERRORS as e:
                failed[mint.token_id] = describe_error(e)
                logger.warning(
                    f"[Scanner] Token #{mint.token_id} metadata unavailable: "
                    f"{failed[mint.token_id]}"
                )

        # Write phase
        chunk_stats = await self._write_chunk(events, fetched, failed)
        await self.tracker.advance_checkpoint(self.contract_address, to_block)
        await self.session.commit()
        return chunk_stats

    async def _write_chunk(
        self,
        events: list[TransferEvent],
        fetched: dict[str, NormalizedMetadata],
        failed: dict[str, str],
    ) -> dict:
        """Apply a chunk's events in log order. Does not commit."""
        chunk_stats = {"minted": 0, "pending": 0, "transfers": 0}
        contract = self.contract_address

        for event in events:
            if event.is_mint:
                if event.token_id in fetched:
                    inserted = await self.writer.store(
                        contract,
                        fetched.pop(event.token_id),
                        owner_address=event.to_address,
                        creator_address=event.to_address,
                        transaction_hash=event.tx_hash,
                    )
                    await self.pending_repo.delete_by_token(contract, event.token_id)
                    chunk_stats["minted"] += int(inserted)
                elif event.token_id in failed:
                    await self.pending_repo.enqueue(
                        contract,
                        event.token_id,
                        event.to_address,
                        event.tx_hash,
                        failed.pop(event.token_id),
                    )
                    chunk_stats["pending"] += 1
                continue

            if await self.nft_repo.update_owner(contract, event.token_id, event.to_address):
                chunk_stats["transfers"] += 1

        return chunk_stats
