"""
Quest Listener - Catalogue Module.

Module: catalogue.py
On-chain quest IDs that earn credit.
"""

from dataclasses import dataclass

from mintsync.config.constants import BASE_TRANSACTION_POINTS, BASE_TRANSACTION_QUEST_ID
from mintsync.models.enums import QuestType


@dataclass(frozen=True)
class QuestDefinition:
    """Quest type and fixed-point points (x100) for an on-chain quest ID."""

    quest_type: QuestType
    points: int


QUEST_CATALOGUE: dict[int, QuestDefinition] = {
    BASE_TRANSACTION_QUEST_ID: QuestDefinition(
        QuestType.BASE_TRANSACTION, BASE_TRANSACTION_POINTS
    ),
}
