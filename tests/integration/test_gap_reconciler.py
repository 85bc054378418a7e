"""Integration tests for discovery-driven gap reconciliation."""

import pytest

from helpers import CONTRACT, ZERO, make_token_uri, transfer, travel_payload, tx_hash, wallet
from mintsync.services.event_scanner import EventScanner
from mintsync.services.ingestion import TokenFetcher
from mintsync.services.metadata_normalizer import MetadataResolver
from mintsync.services.token_discovery import GapReconciler, TokenDiscovery, TokenProber
from mintsync.utils.exceptions import LedgerTimeoutError, TokenURIRevertedError

LIVE = 274
MISSING = (96, 97, 150)


@pytest.fixture
def reconciler(mock_session, store, ledger):
    prober = TokenProber(ledger, CONTRACT, absence_confirmations=2, retry_delay=0)
    discovery = TokenDiscovery(prober, upper_bound=1000)
    fetcher = TokenFetcher(ledger, MetadataResolver(), CONTRACT)
    reconciler = GapReconciler(mock_session, discovery, fetcher, scan_delay=0)
    store.wire(reconciler)
    return reconciler


@pytest.fixture
def drifted(store, ledger, contract):
    """274 live tokens on the ledger; the store is missing three of them."""
    for token_id in range(1, LIVE + 1):
        ledger.owners[token_id] = wallet(token_id)
        ledger.token_uris[token_id] = make_token_uri(travel_payload(token_id))
        if token_id not in MISSING:
            store.add_nft(contract, token_id, wallet(token_id))
    ledger.uri_failures[150] = TokenURIRevertedError(150, "execution reverted")
    return ledger


class TestGapReconciler:
    """Tests for gap closure."""

    @pytest.mark.asyncio
    async def test_inserts_exactly_the_gaps(self, reconciler, store, drifted, contract):
        """Live IDs missing from the store are inserted; failures go pending."""
        stats = await reconciler.reconcile(upper_bound=300)

        assert stats["highest"] == LIVE
        assert stats["probes"] == 8
        assert stats["live"] == LIVE
        assert stats["gap_ids"] == [96, 97, 150]
        assert stats["inserted"] == 2
        assert stats["pending"] == 1

        assert len(store.nfts) == LIVE - 1
        gap_nft = store.nfts[(contract, "96")]
        assert gap_nft.owner_address == wallet(96)
        assert gap_nft.creator_address == wallet(96)
        assert gap_nft.transaction_hash is None

        pending = store.pending_for(150)
        assert pending["owner_address"] == wallet(150)
        assert pending["transaction_hash"] is None

    @pytest.mark.asyncio
    async def test_rerun_changes_nothing(self, reconciler, store, drifted, contract):
        await reconciler.reconcile(upper_bound=300)

        stats = await reconciler.reconcile(upper_bound=300)

        assert stats["gap_ids"] == [150]
        assert stats["inserted"] == 0
        assert len(store.nfts) == LIVE - 1
        assert len(store.pending) == 1

    @pytest.mark.asyncio
    async def test_stored_records_are_untouched(self, reconciler, store, drifted, contract):
        before = store.nfts[(contract, "5")]

        await reconciler.reconcile(upper_bound=300)

        assert store.nfts[(contract, "5")] is before
        assert 5 not in drifted.uri_calls

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, reconciler, store, drifted, mock_session):
        stats = await reconciler.reconcile(upper_bound=300, dry_run=True)

        assert stats["gaps"] == 3
        assert stats["inserted"] == 0
        assert len(store.nfts) == LIVE - len(MISSING)
        assert store.pending == {}
        assert drifted.uri_calls == []

    @pytest.mark.asyncio
    async def test_absent_ids_are_not_gaps(self, reconciler, store, drifted, contract):
        """A burned ID confirmed absent is never inserted."""
        del drifted.owners[50]
        del store.nfts[(contract, "50")]

        stats = await reconciler.reconcile(upper_bound=300)

        assert stats["absent"] == 1
        assert 50 not in stats["gap_ids"]
        assert (contract, "50") not in store.nfts

    @pytest.mark.asyncio
    async def test_inconclusive_ids_are_left_alone(self, reconciler, store, drifted, contract):
        """Timeouts are neither inserted nor treated as absent."""
        drifted.owner_failures[96] = LedgerTimeoutError("ownerOf timed out")

        stats = await reconciler.reconcile(upper_bound=300)

        assert stats["unresolved"] == [96]
        assert 96 not in stats["gap_ids"]
        assert (contract, "96") not in store.nfts
        assert (contract, "97") in store.nfts

    @pytest.mark.asyncio
    async def test_read_transaction_closed_before_fetches(
        self, reconciler, drifted, mock_session
    ):
        commits_at_fetch = []
        original = drifted.token_uri

        async def token_uri(contract_address, token_id):
            commits_at_fetch.append(mock_session.commit.await_count)
            return await original(contract_address, token_id)

        drifted.token_uri = token_uri

        await reconciler.reconcile(upper_bound=300)

        assert commits_at_fetch[0] >= 1


class TestConcurrentWriters:
    """The reconciler and the event scanner writing the same token."""

    @pytest.mark.asyncio
    async def test_scanner_inserts_gap_mid_reconcile(self, reconciler, store, drifted, contract):
        """The reconciler's losing insert is a no-op, not an error."""
        token_uri = drifted.token_uri
        scanned = {}

        async def scanner_wins(contract_address, token_id):
            if token_id == 96:
                scanned["nft"] = store.add_nft(contract, 96, wallet(96), tx=tx_hash(96))
            return await token_uri(contract_address, token_id)

        drifted.token_uri = scanner_wins

        stats = await reconciler.reconcile(upper_bound=300)

        assert stats["already_stored"] == 1
        assert stats["inserted"] == 1
        assert stats["failed"] == 0
        assert store.nfts[(contract, "96")] is scanned["nft"]
        assert store.nfts[(contract, "96")].transaction_hash == tx_hash(96)
        assert len(store.nfts) == LIVE - 1

    @pytest.mark.asyncio
    async def test_scanner_replays_mint_of_reconciled_token(
        self, reconciler, mock_session, store, drifted, contract
    ):
        """A mint event for a gap-inserted token leaves exactly one record."""
        await reconciler.reconcile(upper_bound=300)
        gap_nft = store.nfts[(contract, "97")]

        drifted.head = 500
        drifted.transfers = [transfer(97, ZERO, wallet(97), block=450, tx=tx_hash(97))]
        fetcher = TokenFetcher(drifted, MetadataResolver(), contract)
        scanner = EventScanner(mock_session, drifted, fetcher, chunk_size=100, start_block=400)
        store.wire(scanner)

        stats = await scanner.scan()

        assert stats["success"] is True
        assert stats["minted"] == 0
        assert store.nfts[(contract, "97")] is gap_nft
        assert len(store.nfts) == LIVE - 1
