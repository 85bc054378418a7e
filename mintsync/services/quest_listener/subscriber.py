"""
Quest Listener - Subscriber Module.

Module: subscriber.py
Feeds QuestCompleted events from the chain's own log to the listener.
The chain log is the retry source: a deferred event is replayed by not
advancing the checkpoint past it.
"""

import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.config.constants import SCAN_CHUNK_SIZE
from mintsync.services.checkpoint_service import CheckpointTracker
from mintsync.services.ledger import LedgerReader
from mintsync.utils.exceptions import LedgerError
from mintsync.utils.security import mask_address

from .listener import QuestCompletionListener, QuestOutcome


class QuestEventSubscriber:
    """Log-driven delivery of quest events, one at a time, in log order."""

    def __init__(
        self,
        session: AsyncSession,
        reader: LedgerReader,
        listener: QuestCompletionListener,
        contract_address: str,
        start_block: int = 0,
        chunk_size: int = SCAN_CHUNK_SIZE,
        block_confirmations: int = 0,
    ) -> None:
        """
        Initialize subscriber.

        Args:
            session: Database session (shared with the listener)
            reader: Ledger reader
            listener: Quest completion listener
            contract_address: Quest manager contract
            start_block: First block when the checkpoint is empty
            chunk_size: Blocks per getLogs request
            block_confirmations: Blocks behind head treated as not final
        """
        self.session = session
        self.reader = reader
        self.listener = listener
        self.contract_address = contract_address.lower()
        self.start_block = start_block
        self.chunk_size = chunk_size
        self.block_confirmations = block_confirmations
        self.tracker = CheckpointTracker(session)

    async def poll_once(self) -> dict:
        """
        Deliver every new event up to the confirmed head.

        Returns:
            Dict with one count per QuestOutcome, plus from_block, to_block
            and deferred_at (block of a deferred event, if any)
        """
        checkpoint = await self.tracker.get_checkpoint(self.contract_address)
        await self.session.commit()

        head = await self.reader.block_number() - self.block_confirmations
        from_block = max(checkpoint + 1, self.start_block)

        stats: dict = {outcome.value: 0 for outcome in QuestOutcome}
        stats.update(from_block=from_block, to_block=head, deferred_at=None)

        chunk_start = from_block
        while chunk_start <= head:
            chunk_end = min(chunk_start + self.chunk_size - 1, head)
            events = await self.reader.get_quest_events(
                self.contract_address, chunk_start, chunk_end
            )

            for event in events:
                outcome = await self.listener.handle_event(event)
                stats[outcome.value] += 1

                if outcome is QuestOutcome.DEFERRED:
                    # Stop before the deferred event so the next poll replays it
                    await self._advance(event.block_number - 1)
                    stats.update(to_block=event.block_number - 1, deferred_at=event.block_number)
                    return stats

            await self._advance(chunk_end)
            chunk_start = chunk_end + 1

        return stats

    async def _advance(self, block: int) -> None:
        await self.tracker.advance_checkpoint(self.contract_address, block)
        await self.session.commit()

    async def run_forever(
        self, poll_interval: float, stop_event: asyncio.Event | None = None
    ) -> None:
        """
        Poll until stopped. A failed poll is logged and retried next cycle.

        Args:
            poll_interval: Seconds between polls
            stop_event: Set to stop the loop
        """
        stop_event = stop_event or asyncio.Event()
        logger.info(
            f"[QuestListener] Listening to {mask_address(self.contract_address)} "
            f"every {poll_interval}s"
        )

        while not stop_event.is_set():
            try:
                stats = await self.poll_once()
                if stats[QuestOutcome.RECORDED.value]:
                    logger.info(f"[QuestListener] Poll: {stats}")
            except LedgerError as e:
                logger.warning(f"[QuestListener] Ledger unavailable: {e}")
            except Exception as e:
                await self.session.rollback()
                logger.exception(f"[QuestListener] Poll failed: {e}")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
            except TimeoutError:
                pass

        logger.info("[QuestListener] Stopped")
