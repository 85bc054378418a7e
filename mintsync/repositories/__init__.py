"""
Repositories.

Data access layer. Every insert path uses upsert-or-ignore keyed by the
storage-level unique constraints.
"""

from mintsync.repositories.base import BaseRepository
from mintsync.repositories.nft_repository import NFTRepository
from mintsync.repositories.pending_mint_repository import PendingMintRepository
from mintsync.repositories.quest_completion_repository import (
    QuestCompletionRepository,
)
from mintsync.repositories.sync_state_repository import SyncStateRepository

__all__ = [
    "BaseRepository",
    "NFTRepository",
    "PendingMintRepository",
    "QuestCompletionRepository",
    "SyncStateRepository",
]
