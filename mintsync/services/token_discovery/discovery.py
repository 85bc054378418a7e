"""
Token Discovery - Highest Token Module.

Module: discovery.py
Binary search for the highest live token ID.

Assumes IDs are assigned densely and monotonically from 1. With burned
or non-sequential IDs the search can undercount; event-log replay is
the ground truth in that case.
"""

from dataclasses import dataclass

from loguru import logger

from mintsync.config.constants import DISCOVERY_MAX_UPPER_BOUND, DISCOVERY_UPPER_BOUND
from mintsync.utils.exceptions import InconclusiveProbeError
from mintsync.utils.security import mask_address

from .prober import TokenProber


@dataclass(frozen=True)
class DiscoveryResult:
    """Highest live token ID and the work it took."""

    highest: int
    upper_bound: int
    probes: int
    calls: int


async def binary_search_highest(
    prober: TokenProber, low: int, high: int
) -> tuple[int | None, int, int]:
    """
    Highest existing ID within [low, high].

    Args:
        prober: Token prober
        low: Lower bound (inclusive)
        high: Upper bound (inclusive)

    Returns:
        (highest or None, probes, ledger calls)

    Raises:
        InconclusiveProbeError: A probe could not decide
    """
    highest = None
    probes = 0
    calls = 0

    while low <= high:
        mid = (low + high) // 2
        result = await prober.probe(mid)
        probes += 1
        calls += result.calls

        if result.exists:
            highest = mid
            low = mid + 1
        elif result.absent:
            high = mid - 1
        else:
            raise InconclusiveProbeError(mid, result.error)

    return highest, probes, calls


class TokenDiscovery:
    """Find the highest live token ID of a contract."""

    def __init__(
        self,
        prober: TokenProber,
        upper_bound: int = DISCOVERY_UPPER_BOUND,
        max_upper_bound: int = DISCOVERY_MAX_UPPER_BOUND,
    ) -> None:
        """
        Initialize discovery.

        Args:
            prober: Token prober
            upper_bound: Initial bound when totalSupply is unavailable
            max_upper_bound: The bound is never doubled past this
        """
        self.prober = prober
        self.reader = prober.reader
        self.contract_address = prober.contract_address
        self.upper_bound = upper_bound
        self.max_upper_bound = max_upper_bound

    async def _initial_bound(self, upper_bound: int | None) -> int:
        if upper_bound:
            return upper_bound
        total_supply = await self.reader.total_supply(self.contract_address)
        if total_supply is not None:
            # One past the supply so a dense contract stops without doubling
            return max(total_supply + 1, 1)
        return self.upper_bound

    async def discover_highest(self, upper_bound: int | None = None) -> DiscoveryResult:
        """
        Binary search for the highest live token ID.

        When the highest ID equals the bound, the bound may be too low:
        the search continues in [bound + 1, 2 * bound], up to
        `max_upper_bound`.

        Args:
            upper_bound: Explicit initial bound (default: totalSupply + 1,
                or the configured bound)

        Returns:
            DiscoveryResult (highest is 0 when no token exists)

        Raises:
            InconclusiveProbeError: A probe could not decide
        """
        low, high = 1, await self._initial_bound(upper_bound)
        highest = 0
        probes = 0
        calls = 0

        while True:
            found, step_probes, step_calls = await binary_search_highest(
                self.prober, low, high
            )
            probes += step_probes
            calls += step_calls
            if found is not None:
                highest = found

            if found != high or high >= self.max_upper_bound:
                break

            logger.info(
                f"[Discovery] Token #{high} exists at the bound, extending search"
            )
            low, high = high + 1, min(high * 2, self.max_upper_bound)

        logger.info(
            f"[Discovery] {mask_address(self.contract_address)}: highest token "
            f"#{highest} ({probes} probes, {calls} ledger calls)"
        )
        return DiscoveryResult(
            highest=highest, upper_bound=high, probes=probes, calls=calls
        )
