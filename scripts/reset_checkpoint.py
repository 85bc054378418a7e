#!/usr/bin/env python3
"""
Administrative checkpoint reset.

The only path that may lower a contract's checkpoint. The next event
scan re-reads everything after the new value; inserts are idempotent.

Usage:
    python scripts/reset_checkpoint.py --block 12345000          # Preview
    python scripts/reset_checkpoint.py --block 12345000 --yes    # Apply
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from mintsync.config.database import get_session
from mintsync.config.settings import settings
from mintsync.services.checkpoint_service import CheckpointTracker
from mintsync.utils.validation import normalize_address

# Configure logger
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


async def reset_checkpoint(contract: str, block: int, apply: bool) -> None:
    """Show or apply a checkpoint reset."""
    async with get_session() as session:
        tracker = CheckpointTracker(session)
        current = await tracker.get_checkpoint(contract)

        if not apply:
            logger.info(f"Checkpoint for {contract}: {current}")
            logger.info(f"Would reset to {block}. Re-run with --yes to apply")
            return

        previous = await tracker.reset_checkpoint(contract, block)
        await session.commit()
        logger.success(f"Checkpoint for {contract}: {previous} -> {block}")


def main():
    parser = argparse.ArgumentParser(description="Reset a contract checkpoint")
    parser.add_argument(
        "--contract",
        help="Contract address (default: NFT_CONTRACT_ADDRESS)",
    )
    parser.add_argument("--block", type=int, required=True, help="New checkpoint block")
    parser.add_argument("--yes", action="store_true", help="Apply the reset")
    args = parser.parse_args()

    if args.block < 0:
        parser.error("--block must be non-negative")

    contract = normalize_address(args.contract or settings.nft_contract_address)
    asyncio.run(reset_checkpoint(contract, args.block, args.yes))


if __name__ == "__main__":
    main()
