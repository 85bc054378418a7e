"""
Sync State model.

One checkpoint row per contract address.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from mintsync.models.base import Base


class SyncState(Base):
    """
    Tracks the last block fully processed for a contract.

    Used to:
    - Resume event scanning after restart
    - Read `[checkpoint + 1, head]` on every incremental scan

    `last_processed_block` never decreases except through an explicit
    administrative reset.
    """

    __tablename__ = "sync_state"
    __table_args__ = (
        CheckConstraint(
            "last_processed_block >= 0",
            name="last_processed_block_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Lowercased contract address
    contract_address: Mapped[str] = mapped_column(
        String(42), nullable=False, unique=True, index=True
    )

    last_processed_block: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    last_sync_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SyncState(contract={self.contract_address}, "
            f"block={self.last_processed_block})>"
        )
