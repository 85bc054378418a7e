"""
Ledger Reader.

Read-only JSON-RPC client for the NFT and quest contracts.
"""

from .constants import NFT_ABI, QUEST_ABI
from .events import QuestCompletedEvent, TransferEvent
from .reader import LedgerReader, create_ledger_reader
from .rpc_wrapper import backoff_delay, rpc_call_with_retry, with_timeout

__all__ = [
    "LedgerReader",
    "NFT_ABI",
    "QUEST_ABI",
    "QuestCompletedEvent",
    "TransferEvent",
    "backoff_delay",
    "create_ledger_reader",
    "rpc_call_with_retry",
    "with_timeout",
]
