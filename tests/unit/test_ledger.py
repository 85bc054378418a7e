"""Unit tests for ledger retry helpers, events and reader error mapping."""

import asyncio
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest
from web3.exceptions import ContractLogicError

from helpers import ZERO, quest_event, transfer, wallet
from mintsync.services.ledger import (
    LedgerReader,
    backoff_delay,
    rpc_call_with_retry,
    with_timeout,
)
from mintsync.utils.exceptions import (
    LedgerTimeoutError,
    LedgerTransientError,
    LedgerUnavailableError,
    TokenNotFoundError,
    TokenURIRevertedError,
)
from mintsync.utils.validation import normalize_address, normalize_tx_hash


class TestRetryHelpers:
    """Tests for timeout and backoff helpers."""

    @pytest.mark.asyncio
    async def test_with_timeout_raises_ledger_timeout(self):
        with pytest.raises(LedgerTimeoutError):
            await with_timeout(asyncio.sleep(1), timeout=0.01, operation_name="slow")

    @pytest.mark.asyncio
    async def test_with_timeout_returns_result(self):
        async def quick():
            return 7

        assert await with_timeout(quick(), timeout=1) == 7

    def test_backoff_doubles(self):
        assert [backoff_delay(a, 1.0) for a in (1, 2, 3)] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self):
        call = AsyncMock(
            side_effect=[LedgerUnavailableError("down"), LedgerTimeoutError("slow"), "ok"]
        )

        result = await rpc_call_with_retry(call, max_retries=3, delay_base=0)

        assert result == "ok"
        assert call.await_count == 3

    @pytest.mark.asyncio
    async def test_definitive_errors_are_not_retried(self):
        call = AsyncMock(side_effect=TokenURIRevertedError(5))

        with pytest.raises(TokenURIRevertedError):
            await rpc_call_with_retry(call, max_retries=3, delay_base=0)
        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self):
        call = AsyncMock(side_effect=LedgerUnavailableError("down"))

        with pytest.raises(LedgerTransientError, match="down"):
            await rpc_call_with_retry(call, max_retries=2, delay_base=0)
        assert call.await_count == 2


class TestEvents:
    """Tests for decoded event helpers."""

    def test_mint_is_transfer_from_zero(self):
        assert transfer(1, ZERO, wallet(1), block=10).is_mint
        assert not transfer(1, wallet(1), wallet(2), block=11).is_mint

    def test_quest_day_comes_from_block_timestamp(self):
        """A completion one second before midnight UTC belongs to that day."""
        moment = datetime(2025, 9, 17, 23, 59, 59, tzinfo=UTC)
        event = quest_event(wallet(1), int(moment.timestamp()))

        assert event.completed_at == moment
        assert event.quest_day == date(2025, 9, 17)

    def test_midnight_starts_next_day(self):
        moment = datetime(2025, 9, 18, 0, 0, 0, tzinfo=UTC)
        assert quest_event(wallet(1), int(moment.timestamp())).quest_day == date(2025, 9, 18)


class TestValidation:
    """Tests for address and hash normalization."""

    def test_address_lowercased(self):
        address = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
        assert normalize_address(address) == address.lower()

    @pytest.mark.parametrize("address", ["", "0x1234", "0x" + "z" * 40])
    def test_invalid_address(self, address):
        with pytest.raises(ValueError):
            normalize_address(address)

    def test_tx_hash_from_bytes(self):
        assert normalize_tx_hash(b"\xab" * 32) == "0x" + "ab" * 32

    def test_tx_hash_prefix_added(self):
        assert normalize_tx_hash("AB" * 32) == "0x" + "ab" * 32
        assert normalize_tx_hash(None) is None


class TestLedgerReaderErrors:
    """Revert and failover mapping of the reader, with the RPC call stubbed."""

    @pytest.fixture
    def reader(self):
        reader = LedgerReader(["http://primary.invalid", "http://fallback.invalid"], timeout=1)
        yield reader
        reader.cleanup()

    @pytest.mark.asyncio
    async def test_owner_of_revert_is_token_not_found(self, reader):
        reader._run = AsyncMock(side_effect=ContractLogicError("ERC721: invalid token ID"))

        with pytest.raises(TokenNotFoundError):
            await reader.owner_of(wallet(9), 5)

    @pytest.mark.asyncio
    async def test_zero_owner_is_token_not_found(self, reader):
        reader._run = AsyncMock(return_value=ZERO)

        with pytest.raises(TokenNotFoundError):
            await reader.owner_of(wallet(9), 5)

    @pytest.mark.asyncio
    async def test_owner_is_lowercased(self, reader):
        reader._run = AsyncMock(return_value="0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0")

        assert await reader.owner_of(wallet(9), 5) == "0x742d35cc6634c0532925a3b844bc9e7595f0beb0"

    @pytest.mark.asyncio
    async def test_empty_token_uri_is_reverted(self, reader):
        reader._run = AsyncMock(return_value="")

        with pytest.raises(TokenURIRevertedError):
            await reader.token_uri(wallet(9), 5)

    @pytest.mark.asyncio
    async def test_total_supply_unsupported(self, reader):
        reader._run = AsyncMock(side_effect=ContractLogicError("execution reverted"))

        assert await reader.total_supply(wallet(9)) is None

    @pytest.mark.asyncio
    async def test_failover_to_next_provider(self, reader):
        seen = []

        def call(w3):
            seen.append(w3)
            if len(seen) == 1:
                raise ConnectionError("connection refused")
            return 42

        assert await reader._run(call, "blockNumber") == 42
        assert seen == [reader.providers[0][1], reader.providers[1][1]]

    @pytest.mark.asyncio
    async def test_all_providers_failing_is_transient(self, reader):
        def call(w3):
            raise ConnectionError("connection refused")

        with pytest.raises(LedgerUnavailableError):
            await reader._run(call, "blockNumber")

    @pytest.mark.asyncio
    async def test_revert_is_not_failed_over(self, reader):
        calls = []

        def call(w3):
            calls.append(w3)
            raise ContractLogicError("execution reverted")

        with pytest.raises(ContractLogicError):
            await reader._run(call, "ownerOf")
        assert len(calls) == 1
