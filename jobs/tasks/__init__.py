"""
Worker tasks.

Importing this package registers every dramatiq actor:
    dramatiq jobs.tasks
"""

from jobs.tasks.event_scan import run_event_scan, scan_nft_events
from jobs.tasks.gap_reconcile import reconcile_gaps, run_gap_reconciliation
from jobs.tasks.pending_mint_sweep import run_pending_sweep, sweep_pending_mints
from jobs.tasks.quest_listener import (
    poll_quest_events,
    run_quest_listener,
    run_quest_poll,
)

__all__ = [
    "poll_quest_events",
    "reconcile_gaps",
    "run_event_scan",
    "run_gap_reconciliation",
    "run_pending_sweep",
    "run_quest_listener",
    "run_quest_poll",
    "scan_nft_events",
    "sweep_pending_mints",
]
