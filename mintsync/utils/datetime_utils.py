"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def from_block_timestamp(timestamp: int) -> datetime:
    """
    Convert an on-chain block timestamp (unix seconds) to UTC datetime.

    Args:
        timestamp: Block timestamp in seconds

    Returns:
        Timezone-aware UTC datetime
    """
    return datetime.fromtimestamp(int(timestamp), tz=UTC)


def quest_day(moment: datetime) -> date:
    """
    Calendar day (UTC) a quest credit belongs to.

    Quest days start at 00:00 UTC. Naive datetimes are taken as UTC.

    Args:
        moment: Completion moment

    Returns:
        UTC calendar date
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).date()
