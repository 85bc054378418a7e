"""
NFT model.

One minted token mirrored from the ledger.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    DECIMAL,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, validates

from mintsync.models.base import Base
from mintsync.utils.exceptions import CreatorImmutableError

NFT_TOKEN_UNIQUE = "uq_nfts_contract_token"
NFT_TX_HASH_UNIQUE = "uq_nfts_transaction_hash"


class NFT(Base):
    """
    Canonical NFT record.

    Created once, at the first successful normalization of its mint
    event or gap-reconciliation fetch. Only `owner_address` changes
    afterwards (transfer events). `(contract_address, token_id)` and
    `transaction_hash` are unique at the storage layer.
    """

    __tablename__ = "nfts"
    __table_args__ = (
        UniqueConstraint("contract_address", "token_id", name=NFT_TOKEN_UNIQUE),
        UniqueConstraint("transaction_hash", name=NFT_TX_HASH_UNIQUE),
        Index("idx_nfts_owner", "owner_address"),
        Index("idx_nfts_location", "location"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Identity: string form of the on-chain integer
    token_id: Mapped[str] = mapped_column(String(78), nullable=False)
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False)

    # Ownership (lowercased hex)
    owner_address: Mapped[str] = mapped_column(String(42), nullable=False)
    creator_address: Mapped[str] = mapped_column(String(42), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    object_storage_url: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )  # Durable mirror, filled by the image pipeline
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="travel")

    # Geospatial (absence is valid)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 8), nullable=True)
    longitude: Mapped[Decimal | None] = mapped_column(DECIMAL(11, 8), nullable=True)

    # Provenance
    transaction_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    token_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )  # Full decoded payload, kept verbatim for audit/replay

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

    @validates("creator_address")
    def _validate_creator(self, key: str, value: str) -> str:
        """Creator is set once."""
        current = self.__dict__.get("creator_address")
        if current is not None and current != value:
            raise CreatorImmutableError(
                f"creator_address of token #{self.token_id} is immutable"
            )
        return value.lower() if value else value

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<NFT(contract={self.contract_address}, token_id={self.token_id}, "
            f"owner={self.owner_address})>"
        )
