"""
Pending Mint model.

Retry-queue entry for a mint whose metadata could not be fetched.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mintsync.models.base import Base

PENDING_MINT_TOKEN_UNIQUE = "uq_pending_mints_contract_token"


class PendingMint(Base):
    """
    Pending mint awaiting a successful metadata fetch.

    State machine: Pending -> {Resolved (row deleted) | Pending(retry_count+1)}.
    At most one outstanding entry per `(contract_address, token_id)`.

    `claimed_at` / `claim_token` mark an entry as taken by a running
    sweep; a claim older than the lease is considered abandoned.
    """

    __tablename__ = "pending_mints"
    __table_args__ = (
        UniqueConstraint(
            "contract_address", "token_id", name=PENDING_MINT_TOKEN_UNIQUE
        ),
        Index("idx_pending_mints_claimed_at", "claimed_at"),
        Index("idx_pending_mints_last_attempt", "last_attempt_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    token_id: Mapped[str] = mapped_column(String(78), nullable=False)
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False)
    owner_address: Mapped[str] = mapped_column(String(42), nullable=False)
    transaction_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)

    # Observability, not a termination condition
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Exclusive claim by a sweep
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    claim_token: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PendingMint(token_id={self.token_id}, "
            f"retry_count={self.retry_count})>"
        )

    @property
    def is_claimed(self) -> bool:
        """Check if entry is currently claimed by a sweep."""
        return self.claim_token is not None
