"""
Token Discovery - Prober Module.

Module: prober.py
Decides whether a single token ID exists. A definitive ownerOf revert
counts as one absence confirmation; timeouts and transport errors are
inconclusive and never count towards absence.
"""

import asyncio
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from mintsync.config.constants import (
    ABSENCE_CONFIRMATIONS,
    PROBE_MAX_ATTEMPTS,
    RECONCILE_SCAN_DELAY,
)
from mintsync.services.ledger import LedgerReader
from mintsync.utils.exceptions import LedgerTransientError, TokenNotFoundError


class ProbeStatus(StrEnum):
    """Outcome of a probe."""

    EXISTS = "exists"
    ABSENT = "absent"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class ProbeResult:
    """Probe outcome with the owner (when it exists) and ledger call count."""

    token_id: int
    status: ProbeStatus
    owner: str | None = None
    calls: int = 0
    error: Exception | None = None

    @property
    def exists(self) -> bool:
        return self.status is ProbeStatus.EXISTS

    @property
    def absent(self) -> bool:
        return self.status is ProbeStatus.ABSENT


class TokenProber:
    """Confirmation-based existence check for token IDs."""

    def __init__(
        self,
        reader: LedgerReader,
        contract_address: str,
        absence_confirmations: int = ABSENCE_CONFIRMATIONS,
        max_attempts: int = PROBE_MAX_ATTEMPTS,
        retry_delay: float = RECONCILE_SCAN_DELAY,
    ) -> None:
        """
        Initialize prober.

        Args:
            reader: Ledger reader
            contract_address: NFT contract
            absence_confirmations: Reverts needed to classify an ID absent
            max_attempts: Transient failures tolerated before inconclusive
            retry_delay: Pause between repeated calls for the same ID
        """
        if absence_confirmations < 1:
            raise ValueError("absence_confirmations must be at least 1")
        self.reader = reader
        self.contract_address = contract_address.lower()
        self.absence_confirmations = absence_confirmations
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def probe(self, token_id: int) -> ProbeResult:
        """
        Probe one token ID.

        Args:
            token_id: Token ID

        Returns:
            ProbeResult (EXISTS, ABSENT or INCONCLUSIVE)
        """
        confirmations = 0
        transient_failures = 0
        calls = 0
        last_error: Exception | None = None

        while True:
            calls += 1
            try:
                owner = await self.reader.owner_of(self.contract_address, token_id)
                return ProbeResult(token_id, ProbeStatus.EXISTS, owner=owner, calls=calls)
            except TokenNotFoundError as e:
                confirmations += 1
                last_error = e
                if confirmations >= self.absence_confirmations:
                    return ProbeResult(
                        token_id, ProbeStatus.ABSENT, calls=calls, error=e
                    )
            except LedgerTransientError as e:
                transient_failures += 1
                last_error = e
                if transient_failures >= self.max_attempts:
                    logger.warning(
                        f"[Discovery] Probe #{token_id} inconclusive after "
                        f"{transient_failures} transient failures: {e}"
                    )
                    return ProbeResult(
                        token_id, ProbeStatus.INCONCLUSIVE, calls=calls, error=last_error
                    )

            if self.retry_delay:
                await asyncio.sleep(self.retry_delay)
