"""
Quest Completion Listener.

Consumes QuestCompleted events and credits the day-keyed completion
ledger idempotently, using each event's block timestamp as the
completion moment.

Module Structure:
- catalogue.py: Quest IDs that earn credit
- identity.py: Wallet -> user ID resolution
- listener.py: Per-event crediting with write retry
- subscriber.py: Log-driven event delivery and replay checkpoint
"""

from .catalogue import QUEST_CATALOGUE, QuestDefinition
from .identity import IdentityResolver, MappingIdentityResolver, WalletIdentityResolver
from .listener import QuestCompletionListener, QuestOutcome
from .subscriber import QuestEventSubscriber

__all__ = [
    "QUEST_CATALOGUE",
    "IdentityResolver",
    "MappingIdentityResolver",
    "QuestCompletionListener",
    "QuestDefinition",
    "QuestEventSubscriber",
    "QuestOutcome",
    "WalletIdentityResolver",
]
