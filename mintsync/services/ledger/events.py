"""
Decoded ledger events.
"""

from dataclasses import dataclass
from datetime import date, datetime

from mintsync.config.constants import ZERO_ADDRESS
from mintsync.utils.datetime_utils import from_block_timestamp, quest_day


@dataclass(frozen=True)
class TransferEvent:
    """ERC721 Transfer log. A mint is a transfer from the zero address."""

    token_id: str
    from_address: str
    to_address: str
    tx_hash: str
    block_number: int
    log_index: int

    @property
    def is_mint(self) -> bool:
        return self.from_address == ZERO_ADDRESS


@dataclass(frozen=True)
class QuestCompletedEvent:
    """QuestCompleted log with the timestamp of the block it was mined in."""

    wallet: str
    quest_id: int
    fee: int
    block_timestamp: int
    tx_hash: str
    block_number: int
    log_index: int
    day: int | None = None  # Contract's own day counter, informational

    @property
    def completed_at(self) -> datetime:
        return from_block_timestamp(self.block_timestamp)

    @property
    def quest_day(self) -> date:
        return quest_day(self.completed_at)
