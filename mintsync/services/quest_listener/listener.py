"""
Quest Listener - Listener Module.

Module: listener.py
Credits one QuestCompleted event. The credit day comes from the event's
block timestamp, never from the time it is processed.
"""

import asyncio
from enum import StrEnum

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.config.constants import (
    QUEST_WRITE_MAX_ATTEMPTS,
    QUEST_WRITE_RETRY_DELAY_BASE,
)
from mintsync.models.quest_completion import QUEST_COMPLETION_DAY_UNIQUE
from mintsync.repositories.quest_completion_repository import (
    QuestCompletionRepository,
)
from mintsync.services.ledger import QuestCompletedEvent, backoff_delay
from mintsync.utils.exceptions import (
    TRANSIENT_STORE_ERRORS,
    is_duplicate_key,
    is_transient_store_error,
)
from mintsync.utils.security import mask_address, mask_tx_hash

from .catalogue import QUEST_CATALOGUE, QuestDefinition
from .identity import IdentityResolver, WalletIdentityResolver

STORE_ERRORS = (SQLAlchemyError, *TRANSIENT_STORE_ERRORS)


class QuestOutcome(StrEnum):
    """Result of handling one event."""

    RECORDED = "recorded"
    ALREADY_CREDITED = "already_credited"
    IGNORED = "ignored"
    DEFERRED = "deferred"  # Transient failures exhausted, replay from the chain
    REJECTED = "rejected"  # Permanent store error, needs manual inspection


class QuestCompletionListener:
    """
    Idempotent quest crediting with bounded write retry.

    Write path:
    1. Upsert-or-ignore keyed by (user_id, quest_type, completion_date)
    2. Transient and rate-limit failures retry with 1s, 2s backoff
       (three attempts total), then the event is deferred
    3. A duplicate key counts as success
    4. Any other integrity error is permanent
    """

    def __init__(
        self,
        session: AsyncSession,
        identity_resolver: IdentityResolver | None = None,
        max_attempts: int = QUEST_WRITE_MAX_ATTEMPTS,
        retry_delay_base: float = QUEST_WRITE_RETRY_DELAY_BASE,
        catalogue: dict[int, QuestDefinition] | None = None,
    ) -> None:
        """
        Initialize listener.

        Args:
            session: Database session
            identity_resolver: Wallet -> user ID (default: the wallet itself)
            max_attempts: Store write attempts per event
            retry_delay_base: First backoff delay in seconds
            catalogue: Quest ID -> definition (default: QUEST_CATALOGUE)
        """
        self.session = session
        self.identity_resolver = identity_resolver or WalletIdentityResolver()
        self.max_attempts = max_attempts
        self.retry_delay_base = retry_delay_base
        self.catalogue = QUEST_CATALOGUE if catalogue is None else catalogue
        self.quest_repo = QuestCompletionRepository(session)

    async def handle_event(self, event: QuestCompletedEvent) -> QuestOutcome:
        """
        Credit one quest event.

        Args:
            event: Decoded QuestCompleted event

        Returns:
            QuestOutcome
        """
        quest = self.catalogue.get(event.quest_id)
        if quest is None:
            logger.info(
                f"[QuestListener] Ignoring quest ID {event.quest_id} "
                f"(tx {mask_tx_hash(event.tx_hash)})"
            )
            return QuestOutcome.IGNORED

        user_id = await self.identity_resolver.resolve(event.wallet)
        if user_id is None:
            logger.info(
                f"[QuestListener] No user linked to wallet {mask_address(event.wallet)}"
            )
            return QuestOutcome.IGNORED

        return await self._write_with_retry(event, quest, user_id)

    async def _write_with_retry(
        self, event: QuestCompletedEvent, quest: QuestDefinition, user_id: str
    ) -> QuestOutcome:
        completion_date = event.quest_day
        label = f"{quest.quest_type.value} for {user_id} on {completion_date.isoformat()}"

        for attempt in range(1, self.max_attempts + 1):
            try:
                inserted = await self.quest_repo.insert_ignore(
                    user_id=user_id,
                    quest_type=quest.quest_type.value,
                    points_earned=quest.points,
                    completion_date=completion_date,
                    completed_at=event.completed_at,
                    wallet_address=event.wallet,
                    transaction_hash=event.tx_hash,
                )
                await self.session.commit()

            except IntegrityError as e:
                await self.session.rollback()
                if is_duplicate_key(e, QUEST_COMPLETION_DAY_UNIQUE):
                    logger.info(f"[QuestListener] Already credited: {label}")
                    return QuestOutcome.ALREADY_CREDITED
                logger.critical(
                    f"[QuestListener] Permanent store error crediting {label} "
                    f"(tx {mask_tx_hash(event.tx_hash)}): {e}"
                )
                return QuestOutcome.REJECTED

            except STORE_ERRORS as e:
                await self.session.rollback()
                if not is_transient_store_error(e):
                    logger.critical(
                        f"[QuestListener] Permanent store error crediting {label} "
                        f"(tx {mask_tx_hash(event.tx_hash)}): {e}"
                    )
                    return QuestOutcome.REJECTED

                if attempt < self.max_attempts:
                    delay = backoff_delay(attempt, self.retry_delay_base)
                    logger.warning(
                        f"[QuestListener] Write failed on attempt "
                        f"{attempt}/{self.max_attempts}: {e}. Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.error(
                    f"[QuestListener] Giving up on {label} after {attempt} attempts: "
                    f"{e}. Left for replay from block {event.block_number}"
                )
                return QuestOutcome.DEFERRED

            if not inserted:
                logger.info(f"[QuestListener] Already credited: {label}")
                return QuestOutcome.ALREADY_CREDITED

            logger.success(
                f"[QuestListener] Credited {label} (+{quest.points / 100:.2f} points)"
            )
            return QuestOutcome.RECORDED

        return QuestOutcome.DEFERRED
