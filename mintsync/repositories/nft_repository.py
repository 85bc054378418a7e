"""
NFT repository.

Data access layer for the canonical NFT table.
"""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.models.nft import NFT
from mintsync.repositories.base import BaseRepository
from mintsync.utils.datetime_utils import utc_now


class NFTRepository(BaseRepository[NFT]):
    """Repository for NFT records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(NFT, session)

    async def insert_ignore(self, **values: Any) -> bool:
        """
        Insert an NFT record, doing nothing on any unique conflict.

        Conflicts on `(contract_address, token_id)` and on
        `transaction_hash` both turn the insert into a no-op, so two
        workers racing on the same token cannot fail each other.

        Args:
            **values: Column values

        Returns:
            True if a row was inserted, False if it already existed
        """
        now = utc_now()
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        for key in ("contract_address", "owner_address", "creator_address"):
            if values.get(key):
                values[key] = values[key].lower()

        stmt = (
            insert(NFT)
            .values(**values)
            .on_conflict_do_nothing()
            .returning(NFT.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_by_token(
        self, contract_address: str, token_id: str
    ) -> NFT | None:
        """
        Get NFT by contract and token ID.

        Args:
            contract_address: Lowercased contract address
            token_id: Token ID (string form)

        Returns:
            NFT or None if not stored
        """
        return await self.get_by(
            contract_address=contract_address, token_id=str(token_id)
        )

    async def get_token_ids(self, contract_address: str) -> set[str]:
        """
        Get every stored token ID for a contract.

        Args:
            contract_address: Lowercased contract address

        Returns:
            Set of token IDs
        """
        stmt = select(NFT.token_id).where(NFT.contract_address == contract_address)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def get_existing_token_ids(
        self, contract_address: str, token_ids: Iterable[str]
    ) -> set[str]:
        """
        Filter token IDs down to those already stored.

        Args:
            contract_address: Lowercased contract address
            token_ids: Candidate token IDs

        Returns:
            Subset of token_ids present in the store
        """
        candidates = [str(t) for t in token_ids]
        if not candidates:
            return set()

        stmt = select(NFT.token_id).where(
            NFT.contract_address == contract_address,
            NFT.token_id.in_(candidates),
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def update_owner(
        self, contract_address: str, token_id: str, owner_address: str
    ) -> bool:
        """
        Record a transfer. The creator is never touched.

        Args:
            contract_address: Lowercased contract address
            token_id: Token ID
            owner_address: New owner

        Returns:
            True if the record exists and was updated
        """
        stmt = (
            update(NFT)
            .where(
                NFT.contract_address == contract_address,
                NFT.token_id == str(token_id),
            )
            .values(owner_address=owner_address.lower(), updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
