#!/usr/bin/env python3
"""
Run token discovery and gap reconciliation on demand.

Finds the highest live token ID, verifies every ID below it against the
ledger, and inserts the live IDs missing from the store. Safe to re-run.

Usage:
    python scripts/reconcile_gaps.py --dry-run                 # Report gaps only
    python scripts/reconcile_gaps.py                           # Insert gaps
    python scripts/reconcile_gaps.py --contract 0x... --upper-bound 300
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from jobs.tasks.gap_reconcile import run_gap_reconciliation
from mintsync.utils.validation import normalize_address

# Configure logger
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


def main():
    parser = argparse.ArgumentParser(description="Reconcile missing NFT records")
    parser.add_argument(
        "--contract",
        help="NFT contract address (default: NFT_CONTRACT_ADDRESS)",
    )
    parser.add_argument(
        "--upper-bound",
        type=int,
        help="Initial binary search bound (default: totalSupply + 1)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report the gap set without inserting anything",
    )
    args = parser.parse_args()

    contract = normalize_address(args.contract) if args.contract else None
    if args.upper_bound is not None and args.upper_bound < 1:
        parser.error("--upper-bound must be at least 1")

    stats = asyncio.run(
        run_gap_reconciliation(contract, args.upper_bound, args.dry_run)
    )
    if not stats.get("success"):
        logger.error(f"Reconciliation failed: {stats.get('error')}")
        sys.exit(1)

    logger.info(f"Highest token: #{stats['highest']} ({stats['probes']} probes)")
    logger.info(f"Live: {stats['live']}, absent: {stats['absent']}")
    if stats["unresolved"]:
        logger.warning(f"Unresolved (inconclusive) IDs: {stats['unresolved']}")
    logger.info(f"Gaps: {stats['gaps']} {stats['gap_ids']}")
    if not args.dry_run:
        logger.success(
            f"Inserted {stats['inserted']}, pending {stats['pending']}, "
            f"failed {stats['failed']}"
        )


if __name__ == "__main__":
    main()
