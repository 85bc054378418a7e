"""
Token Discovery / Gap Reconciler.

Determines the true set of existing token IDs when event-log coverage
is suspect, and inserts the ones missing from the store.

Module Structure:
- prober.py: Confirmation-based existence check for one ID
- discovery.py: Binary search for the highest live ID
- reconciler.py: Exhaustive scan, gap set and gap insertion
"""

from .discovery import DiscoveryResult, TokenDiscovery, binary_search_highest
from .prober import ProbeResult, ProbeStatus, TokenProber
from .reconciler import GapReconciler, LiveSetScan

__all__ = [
    "DiscoveryResult",
    "GapReconciler",
    "LiveSetScan",
    "ProbeResult",
    "ProbeStatus",
    "TokenDiscovery",
    "TokenProber",
    "binary_search_highest",
]
