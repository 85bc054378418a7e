"""
Model enumerations.
"""

from enum import StrEnum


class QuestType(StrEnum):
    """Quest kinds that can be credited once per user per day."""

    DAILY_CHECKIN = "daily_checkin"
    HOLDER_BONUS = "holder_bonus"
    BASE_TRANSACTION = "base_transaction"
    SOCIAL_POST = "social_post"
