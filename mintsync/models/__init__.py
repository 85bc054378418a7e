"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from mintsync.models.base import Base
from mintsync.models.enums import QuestType
from mintsync.models.nft import NFT
from mintsync.models.pending_mint import PendingMint
from mintsync.models.quest_completion import QuestCompletion
from mintsync.models.sync_state import SyncState

__all__ = [
    "Base",
    "QuestType",
    "NFT",
    "PendingMint",
    "QuestCompletion",
    "SyncState",
]
