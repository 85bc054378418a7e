"""
Checkpoint Tracker.

Per-contract record of the last block fully processed. Advancing is
monotonic; only an explicit administrative reset may lower it.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.repositories.sync_state_repository import SyncStateRepository
from mintsync.utils.exceptions import RegressionError
from mintsync.utils.security import mask_address


class CheckpointTracker:
    """
    Checkpoint read / compare-and-advance.

    The tracker never commits. `advance_checkpoint` runs in the caller's
    transaction so the checkpoint and the batch it covers become durable
    together.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize tracker."""
        self.session = session
        self.sync_repo = SyncStateRepository(session)

    async def get_checkpoint(self, contract_address: str) -> int:
        """
        Last processed block for a contract.

        Args:
            contract_address: Contract address

        Returns:
            Block number, 0 when the contract was never synced
        """
        return await self.sync_repo.get_last_block(contract_address.lower())

    async def advance_checkpoint(
        self, contract_address: str, new_block: int
    ) -> None:
        """
        Move the checkpoint forward (or keep it where it is).

        Args:
            contract_address: Contract address
            new_block: Last block covered by the current batch

        Raises:
            RegressionError: new_block is below the stored value; the
                stored value is left unchanged
        """
        if new_block < 0:
            raise ValueError(f"Block number must be non-negative, got {new_block}")

        contract = contract_address.lower()
        await self.sync_repo.ensure(contract)

        if await self.sync_repo.compare_and_advance(contract, new_block):
            logger.debug(
                f"[Checkpoint] {mask_address(contract)} advanced to block {new_block}"
            )
            return

        current = await self.sync_repo.get_last_block(contract)
        logger.critical(
            f"[Checkpoint] Regression refused for {mask_address(contract)}: "
            f"stored {current}, requested {new_block}"
        )
        raise RegressionError(contract, current, new_block)

    async def reset_checkpoint(self, contract_address: str, block: int) -> int:
        """
        Administrative reset. May lower the checkpoint.

        Args:
            contract_address: Contract address
            block: New checkpoint value

        Returns:
            Previous checkpoint value
        """
        if block < 0:
            raise ValueError(f"Block number must be non-negative, got {block}")

        contract = contract_address.lower()
        await self.sync_repo.ensure(contract)
        previous = await self.sync_repo.get_last_block(contract)
        await self.sync_repo.reset(contract, block)

        logger.warning(
            f"[Checkpoint] {mask_address(contract)} reset: {previous} -> {block}"
        )
        return previous
