"""
Quest Completion repository.

Data access layer for the append-only quest credit ledger.
"""

from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.models.quest_completion import (
    QUEST_COMPLETION_DAY_UNIQUE,
    QuestCompletion,
)
from mintsync.repositories.base import BaseRepository
from mintsync.utils.datetime_utils import utc_now


class QuestCompletionRepository(BaseRepository[QuestCompletion]):
    """Repository for quest completions. Rows are never updated."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(QuestCompletion, session)

    async def insert_ignore(
        self,
        user_id: str,
        quest_type: str,
        points_earned: int,
        completion_date: date,
        completed_at: datetime,
        wallet_address: str | None = None,
        transaction_hash: str | None = None,
    ) -> bool:
        """
        Credit a quest for a day, doing nothing if already credited.

        Only the `(user_id, quest_type, completion_date)` key is treated
        as a benign conflict; any other constraint still raises.

        Args:
            user_id: Stable user identity
            quest_type: Quest type value
            points_earned: Points (fixed-point, x100)
            completion_date: UTC quest day
            completed_at: Event block timestamp
            wallet_address: Wallet that emitted the event
            transaction_hash: Event transaction hash

        Returns:
            True if a row was inserted, False if the day was already credited
        """
        stmt = (
            insert(QuestCompletion)
            .values(
                user_id=user_id,
                quest_type=quest_type,
                points_earned=points_earned,
                completion_date=completion_date,
                completed_at=completed_at,
                wallet_address=wallet_address,
                transaction_hash=transaction_hash,
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(constraint=QUEST_COMPLETION_DAY_UNIQUE)
            .returning(QuestCompletion.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_completion(
        self, user_id: str, quest_type: str, completion_date: date
    ) -> QuestCompletion | None:
        """Get the credit for one user, quest type and day."""
        return await self.get_by(
            user_id=user_id,
            quest_type=quest_type,
            completion_date=completion_date,
        )

    async def get_total_points(self, user_id: str) -> int:
        """
        Sum of points credited to a user.

        Args:
            user_id: Stable user identity

        Returns:
            Total points (fixed-point, x100)
        """
        stmt = select(func.coalesce(func.sum(QuestCompletion.points_earned), 0)).where(
            QuestCompletion.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)
