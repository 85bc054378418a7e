"""
Sync State repository.

Data access layer for per-contract checkpoints.
"""

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.models.sync_state import SyncState
from mintsync.repositories.base import BaseRepository
from mintsync.utils.datetime_utils import utc_now


class SyncStateRepository(BaseRepository[SyncState]):
    """Repository for checkpoint rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(SyncState, session)

    async def get_by_contract(self, contract_address: str) -> SyncState | None:
        """
        Get checkpoint row for a contract.

        Args:
            contract_address: Lowercased contract address

        Returns:
            SyncState or None if the contract was never synced
        """
        return await self.get_by(contract_address=contract_address)

    async def get_last_block(self, contract_address: str) -> int:
        """
        Get last processed block, 0 when no row exists.

        Args:
            contract_address: Lowercased contract address

        Returns:
            Last processed block number
        """
        stmt = select(SyncState.last_processed_block).where(
            SyncState.contract_address == contract_address
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() or 0

    async def ensure(self, contract_address: str) -> None:
        """
        Create the checkpoint row at block 0 if it does not exist.

        Args:
            contract_address: Lowercased contract address
        """
        now = utc_now()
        stmt = (
            insert(SyncState)
            .values(
                contract_address=contract_address,
                last_processed_block=0,
                last_sync_at=now,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[SyncState.contract_address])
        )
        await self.session.execute(stmt)

    async def compare_and_advance(
        self, contract_address: str, new_block: int
    ) -> bool:
        """
        Advance the checkpoint only if it does not move backwards.

        The comparison happens inside the UPDATE, so two concurrent
        writers cannot regress the stored value.

        Args:
            contract_address: Lowercased contract address
            new_block: Requested block

        Returns:
            True if the row was updated, False if it would regress
        """
        now = utc_now()
        stmt = (
            update(SyncState)
            .where(
                SyncState.contract_address == contract_address,
                SyncState.last_processed_block <= new_block,
            )
            .values(
                last_processed_block=new_block,
                last_sync_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def reset(self, contract_address: str, block: int) -> bool:
        """
        Unconditionally set the checkpoint (administrative reset).

        Args:
            contract_address: Lowercased contract address
            block: New block value

        Returns:
            True if a row was updated
        """
        now = utc_now()
        stmt = (
            update(SyncState)
            .where(SyncState.contract_address == contract_address)
            .values(last_processed_block=block, last_sync_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
