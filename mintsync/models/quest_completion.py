"""
Quest Completion model.

Append-only, day-scoped quest credits.
"""

from datetime import UTC, date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mintsync.models.base import Base

QUEST_COMPLETION_DAY_UNIQUE = "uq_quest_completions_user_quest_day"


class QuestCompletion(Base):
    """
    A single quest credit for a user on a UTC calendar day.

    Never mutated or deleted. `(user_id, quest_type, completion_date)`
    is unique, so replaying the same event cannot double-credit.
    """

    __tablename__ = "quest_completions"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "quest_type",
            "completion_date",
            name=QUEST_COMPLETION_DAY_UNIQUE,
        ),
        CheckConstraint("points_earned >= 0", name="points_non_negative"),
        Index("idx_quest_completions_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Stable identity, not a wallet
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quest_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Fixed-point: points * 100
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False)

    completion_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )  # Block timestamp of the crediting event

    # Provenance
    wallet_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    transaction_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<QuestCompletion(user_id={self.user_id}, quest={self.quest_type}, "
            f"day={self.completion_date})>"
        )
