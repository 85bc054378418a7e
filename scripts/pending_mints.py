#!/usr/bin/env python3
"""
Show the pending mint queue.

Usage:
    python scripts/pending_mints.py          # Stats and attention list
    python scripts/pending_mints.py --all    # Every entry
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from jobs.tasks.pending_mint_sweep import sweep_policy_from_settings
from mintsync.config.database import get_session
from mintsync.repositories.pending_mint_repository import PendingMintRepository
from mintsync.services.pending_mint_service.stats import PendingMintStatsManager

# Configure logger
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


def _describe(entry) -> str:
    attempted = entry.last_attempt_at.isoformat() if entry.last_attempt_at else "never"
    return (
        f"#{entry.token_id} retries={entry.retry_count} last_attempt={attempted} "
        f"claimed={'yes' if entry.is_claimed else 'no'} error={entry.last_error}"
    )


async def show_queue(show_all: bool) -> None:
    """Print queue statistics and entries."""
    async with get_session() as session:
        repo = PendingMintRepository(session)
        stats_manager = PendingMintStatsManager(repo, sweep_policy_from_settings())

        stats = await stats_manager.get_queue_stats()
        logger.info(
            f"Pending: {stats['total']}, claimed: {stats['claimed']}, "
            f"attention required: {stats['attention_required']}, "
            f"max retries: {stats['max_retry_count']}"
        )

        for entry in await stats_manager.get_attention_required():
            logger.warning(f"ATTENTION {_describe(entry)}")

        if show_all:
            for entry in await repo.get_all_pending():
                logger.info(_describe(entry))


def main():
    parser = argparse.ArgumentParser(description="Show the pending mint queue")
    parser.add_argument("--all", action="store_true", help="List every entry")
    args = parser.parse_args()
    asyncio.run(show_queue(args.all))


if __name__ == "__main__":
    main()
