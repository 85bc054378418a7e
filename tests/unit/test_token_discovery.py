"""Unit tests for token probing and highest-token discovery."""

import pytest

from helpers import CONTRACT, wallet
from mintsync.services.token_discovery import (
    ProbeStatus,
    TokenDiscovery,
    TokenProber,
    binary_search_highest,
)
from mintsync.utils.exceptions import (
    InconclusiveProbeError,
    LedgerTimeoutError,
    LedgerUnavailableError,
    TokenNotFoundError,
)


def make_prober(ledger, **kwargs) -> TokenProber:
    kwargs.setdefault("retry_delay", 0)
    return TokenProber(ledger, CONTRACT, **kwargs)


def mint_range(ledger, last: int) -> None:
    for token_id in range(1, last + 1):
        ledger.owners[token_id] = wallet(token_id)


class TestTokenProber:
    """Tests for confirmation-based existence checks."""

    @pytest.mark.asyncio
    async def test_existing_token(self, ledger):
        ledger.owners[5] = wallet(5)

        result = await make_prober(ledger).probe(5)

        assert result.status is ProbeStatus.EXISTS
        assert result.owner == wallet(5)
        assert result.calls == 1

    @pytest.mark.asyncio
    async def test_absence_needs_repeated_reverts(self, ledger):
        """One revert is not enough to call a token absent."""
        result = await make_prober(ledger, absence_confirmations=2).probe(9)

        assert result.status is ProbeStatus.ABSENT
        assert result.calls == 2

    @pytest.mark.asyncio
    async def test_single_spurious_revert_is_overruled(self, ledger):
        ledger.owner_script[9] = [TokenNotFoundError(9), wallet(9)]

        result = await make_prober(ledger, absence_confirmations=2).probe(9)

        assert result.exists
        assert result.calls == 2

    @pytest.mark.asyncio
    async def test_transient_errors_are_inconclusive(self, ledger):
        """Timeouts never count towards absence."""
        ledger.owner_failures[9] = LedgerTimeoutError("ownerOf timed out")

        result = await make_prober(ledger, max_attempts=3).probe(9)

        assert result.status is ProbeStatus.INCONCLUSIVE
        assert result.calls == 3
        assert isinstance(result.error, LedgerTimeoutError)

    @pytest.mark.asyncio
    async def test_transient_then_reverts_is_absent(self, ledger):
        ledger.owner_script[9] = [
            LedgerUnavailableError("down"),
            TokenNotFoundError(9),
            TokenNotFoundError(9),
        ]

        result = await make_prober(ledger, absence_confirmations=2).probe(9)

        assert result.absent
        assert result.calls == 3

    def test_confirmations_must_be_positive(self, ledger):
        with pytest.raises(ValueError):
            make_prober(ledger, absence_confirmations=0)


class TestBinarySearch:
    """Tests for the bounded binary search."""

    @pytest.mark.asyncio
    async def test_finds_274_within_300(self, ledger):
        """Highest of 274 dense tokens under bound 300 in at most 9 probes."""
        mint_range(ledger, 274)

        highest, probes, calls = await binary_search_highest(make_prober(ledger), 1, 300)

        assert highest == 274
        assert probes == 8
        assert probes <= 9
        assert calls >= probes

    @pytest.mark.asyncio
    async def test_empty_contract(self, ledger):
        highest, probes, _ = await binary_search_highest(make_prober(ledger), 1, 16)

        assert highest is None
        assert probes > 0

    @pytest.mark.asyncio
    async def test_inconclusive_probe_raises(self, ledger):
        mint_range(ledger, 274)
        ledger.owner_failures[150] = LedgerTimeoutError("timeout")

        with pytest.raises(InconclusiveProbeError) as exc_info:
            await binary_search_highest(make_prober(ledger), 1, 300)
        assert exc_info.value.token_id == 150


class TestTokenDiscovery:
    """Tests for bound selection and extension."""

    @pytest.mark.asyncio
    async def test_explicit_bound(self, ledger):
        mint_range(ledger, 274)

        result = await TokenDiscovery(make_prober(ledger)).discover_highest(300)

        assert result.highest == 274
        assert result.upper_bound == 300
        assert result.probes == 8

    @pytest.mark.asyncio
    async def test_total_supply_bound(self, ledger):
        mint_range(ledger, 274)
        ledger.supply = 274

        result = await TokenDiscovery(make_prober(ledger)).discover_highest()

        assert result.highest == 274
        assert result.upper_bound == 275

    @pytest.mark.asyncio
    async def test_bound_doubles_when_highest_hits_it(self, ledger):
        """Without totalSupply a too-low bound is extended."""
        mint_range(ledger, 250)

        result = await TokenDiscovery(make_prober(ledger), upper_bound=100).discover_highest()

        assert result.highest == 250
        assert result.upper_bound == 400

    @pytest.mark.asyncio
    async def test_extension_stops_at_max_bound(self, ledger):
        mint_range(ledger, 1000)

        discovery = TokenDiscovery(make_prober(ledger), upper_bound=10, max_upper_bound=40)
        result = await discovery.discover_highest()

        assert result.highest == 40
        assert result.upper_bound == 40

    @pytest.mark.asyncio
    async def test_no_tokens(self, ledger):
        result = await TokenDiscovery(make_prober(ledger), upper_bound=8).discover_highest()

        assert result.highest == 0
