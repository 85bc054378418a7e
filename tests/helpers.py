"""In-memory fakes and builders shared by the test suite."""

import base64
import json
import os
import uuid
from datetime import timedelta

from mintsync.models.nft import NFT
from mintsync.models.pending_mint import PendingMint
from mintsync.services.ledger import QuestCompletedEvent, TransferEvent
from mintsync.utils.datetime_utils import utc_now
from mintsync.utils.exceptions import (
    LedgerUnavailableError,
    TokenNotFoundError,
    TokenURIRevertedError,
)

CONTRACT = os.environ["NFT_CONTRACT_ADDRESS"]
QUEST_CONTRACT = os.environ["QUEST_CONTRACT_ADDRESS"]
ZERO = "0x" + "0" * 40


def wallet(n: int) -> str:
    """Deterministic lowercase test wallet."""
    return "0x" + f"{n:040x}"


def tx_hash(n: int) -> str:
    """Deterministic transaction hash."""
    return "0x" + f"{n:064x}"


def make_token_uri(payload) -> str:
    """Inline `data:application/json;base64,...` tokenURI."""
    encoded = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return f"data:application/json;base64,{encoded}"


def travel_payload(token_id: int, city: str = "Lisbon") -> dict:
    return {
        "name": f"Trip #{token_id}",
        "description": f"Postcard from {city}",
        "image": f"ipfs://QmImage{token_id}/photo.png",
        "attributes": [
            {"trait_type": "Category", "value": "travel"},
            {"trait_type": "Location", "value": city},
            {"trait_type": "Latitude", "value": "38.7223"},
            {"trait_type": "Longitude", "value": "-9.1393"},
        ],
    }


# ------------------------------------------------------------------------
# In-memory store and repositories
# ------------------------------------------------------------------------


class InMemoryStore:
    """Rows shared by the fake repositories, with the real uniqueness rules."""

    def __init__(self) -> None:
        self.nfts: dict[tuple[str, str], NFT] = {}
        self.pending: dict[int, dict] = {}
        self.checkpoints: dict[str, int] = {}
        self.quests: dict[tuple[str, str, object], dict] = {}
        self._next_id = 1

        self.nft_repo = FakeNFTRepository(self)
        self.pending_repo = FakePendingMintRepository(self)
        self.sync_repo = FakeSyncStateRepository(self)
        self.quest_repo = FakeQuestCompletionRepository(self)

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def add_nft(self, contract: str, token_id, owner: str, tx: str | None = None) -> NFT:
        nft = NFT(
            id=self.next_id(),
            token_id=str(token_id),
            contract_address=contract.lower(),
            owner_address=owner.lower(),
            creator_address=owner.lower(),
            title=f"Stored #{token_id}",
            location="Unknown Location",
            transaction_hash=tx,
        )
        self.nfts[(contract.lower(), str(token_id))] = nft
        return nft

    def add_pending(self, contract: str, token_id, owner: str, **fields) -> int:
        entry_id = self.next_id()
        row = {
            "id": entry_id,
            "contract_address": contract.lower(),
            "token_id": str(token_id),
            "owner_address": owner.lower(),
            "transaction_hash": fields.pop("transaction_hash", None),
            "retry_count": 0,
            "last_error": None,
            "last_attempt_at": utc_now(),
            "claimed_at": None,
            "claim_token": None,
            "created_at": utc_now(),
        }
        row.update(fields)
        self.pending[entry_id] = row
        return entry_id

    def pending_for(self, token_id) -> dict | None:
        for row in self.pending.values():
            if row["token_id"] == str(token_id):
                return row
        return None

    def wire(self, obj) -> None:
        """Swap every repository reachable from a service for the fakes."""
        for name in ("nft_repo", "pending_repo", "sync_repo", "quest_repo"):
            if hasattr(obj, name):
                setattr(obj, name, getattr(self, name))
        for child in ("writer", "tracker", "core", "processor", "stats_manager", "listener"):
            if hasattr(obj, child):
                self.wire(getattr(obj, child))


class FakeNFTRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def insert_ignore(self, **values) -> bool:
        key = (values["contract_address"].lower(), str(values["token_id"]))
        tx = values.get("transaction_hash")
        if key in self.store.nfts:
            return False
        if tx and any(n.transaction_hash == tx for n in self.store.nfts.values()):
            return False
        for address in ("contract_address", "owner_address", "creator_address"):
            values[address] = values[address].lower()
        self.store.nfts[key] = NFT(id=self.store.next_id(), **values)
        return True

    async def get_by_token(self, contract_address: str, token_id) -> NFT | None:
        return self.store.nfts.get((contract_address, str(token_id)))

    async def get_token_ids(self, contract_address: str) -> set[str]:
        return {t for (c, t) in self.store.nfts if c == contract_address}

    async def get_existing_token_ids(self, contract_address: str, token_ids) -> set[str]:
        stored = await self.get_token_ids(contract_address)
        return {str(t) for t in token_ids} & stored

    async def update_owner(self, contract_address: str, token_id, owner_address: str) -> bool:
        nft = self.store.nfts.get((contract_address, str(token_id)))
        if nft is None:
            return False
        nft.owner_address = owner_address.lower()
        return True


class FakePendingMintRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def enqueue(self, contract_address, token_id, owner_address, transaction_hash, error) -> bool:
        for row in self.store.pending.values():
            if (row["contract_address"], row["token_id"]) == (contract_address, str(token_id)):
                return False
        self.store.add_pending(
            contract_address,
            token_id,
            owner_address,
            transaction_hash=transaction_hash,
            last_error=error,
        )
        return True

    async def claim_batch(self, limit: int, lease_seconds: int) -> list[PendingMint]:
        cutoff = utc_now() - timedelta(seconds=lease_seconds)
        claim_token = str(uuid.uuid4())
        claimed = []
        for row in sorted(self.store.pending.values(), key=lambda r: (r["last_attempt_at"], r["id"])):
            if len(claimed) >= limit:
                break
            if row["claimed_at"] is not None and row["claimed_at"] >= cutoff:
                continue
            row.update(claimed_at=utc_now(), claim_token=claim_token)
            claimed.append(PendingMint(**row))
        return claimed

    async def record_failure(self, entry_id, claim_token, expected_retry_count, error) -> bool:
        row = self.store.pending.get(entry_id)
        if (
            row is None
            or row["claim_token"] != claim_token
            or row["retry_count"] != expected_retry_count
        ):
            return False
        row.update(
            retry_count=row["retry_count"] + 1,
            last_error=error,
            last_attempt_at=utc_now(),
            claimed_at=None,
            claim_token=None,
        )
        return True

    async def resolve(self, entry_id, claim_token) -> bool:
        row = self.store.pending.get(entry_id)
        if row is None or row["claim_token"] != claim_token:
            return False
        del self.store.pending[entry_id]
        return True

    async def delete_by_token(self, contract_address, token_id) -> int:
        doomed = [
            entry_id
            for entry_id, row in self.store.pending.items()
            if (row["contract_address"], row["token_id"]) == (contract_address, str(token_id))
        ]
        for entry_id in doomed:
            del self.store.pending[entry_id]
        return len(doomed)

    async def get_all_pending(self, contract_address=None) -> list[PendingMint]:
        return [PendingMint(**row) for row in self.store.pending.values()]

    async def get_attention_required(self, threshold: int) -> list[PendingMint]:
        rows = [r for r in self.store.pending.values() if r["retry_count"] >= threshold]
        rows.sort(key=lambda r: -r["retry_count"])
        return [PendingMint(**row) for row in rows]

    async def get_queue_stats(self, threshold: int, lease_seconds: int) -> dict:
        rows = list(self.store.pending.values())
        cutoff = utc_now() - timedelta(seconds=lease_seconds)
        return {
            "total": len(rows),
            "claimed": sum(1 for r in rows if r["claimed_at"] and r["claimed_at"] >= cutoff),
            "attention_required": sum(1 for r in rows if r["retry_count"] >= threshold),
            "max_retry_count": max((r["retry_count"] for r in rows), default=0),
            "oldest_attempt_at": min((r["last_attempt_at"] for r in rows), default=None),
        }


class FakeSyncStateRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get_last_block(self, contract_address: str) -> int:
        return self.store.checkpoints.get(contract_address, 0)

    async def ensure(self, contract_address: str) -> None:
        self.store.checkpoints.setdefault(contract_address, 0)

    async def compare_and_advance(self, contract_address: str, new_block: int) -> bool:
        if contract_address not in self.store.checkpoints:
            return False
        if self.store.checkpoints[contract_address] > new_block:
            return False
        self.store.checkpoints[contract_address] = new_block
        return True

    async def reset(self, contract_address: str, block: int) -> bool:
        if contract_address not in self.store.checkpoints:
            return False
        self.store.checkpoints[contract_address] = block
        return True


class FakeQuestCompletionRepository:
    """Quest credits keyed by (user, quest type, day), with scripted failures."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.failures: list[Exception] = []
        self.calls = 0

    async def insert_ignore(self, user_id, quest_type, points_earned, completion_date,
                            completed_at, wallet_address=None, transaction_hash=None) -> bool:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        key = (user_id, quest_type, completion_date)
        if key in self.store.quests:
            return False
        self.store.quests[key] = {
            "points_earned": points_earned,
            "completed_at": completed_at,
            "wallet_address": wallet_address,
            "transaction_hash": transaction_hash,
        }
        return True


# ------------------------------------------------------------------------
# Fake ledger
# ------------------------------------------------------------------------


class FakeLedger:
    """
    Scripted ledger.

    `owners` and `token_uris` answer by default; `owner_script` holds
    per-token answers (owner string or exception) consumed first, and
    `owner_failures` / `uri_failures` raise on every call.
    """

    def __init__(self) -> None:
        self.owners: dict[int, str] = {}
        self.token_uris: dict[int, str] = {}
        self.owner_script: dict[int, list] = {}
        self.owner_failures: dict[int, Exception] = {}
        self.uri_failures: dict[int, Exception] = {}
        self.supply: int | None = None
        self.head = 0
        self.transfers: list[TransferEvent] = []
        self.quest_events: list[QuestCompletedEvent] = []
        self.fail_logs_from: int | None = None
        self.owner_calls: list[int] = []
        self.uri_calls: list[int] = []

    async def owner_of(self, contract_address, token_id) -> str:
        token_id = int(token_id)
        self.owner_calls.append(token_id)
        script = self.owner_script.get(token_id)
        if script:
            answer = script.pop(0)
            if isinstance(answer, Exception):
                raise answer
            return answer
        if token_id in self.owner_failures:
            raise self.owner_failures[token_id]
        if token_id in self.owners:
            return self.owners[token_id]
        raise TokenNotFoundError(token_id, "ERC721: invalid token ID")

    async def token_uri(self, contract_address, token_id) -> str:
        token_id = int(token_id)
        self.uri_calls.append(token_id)
        if token_id in self.uri_failures:
            raise self.uri_failures[token_id]
        if token_id in self.token_uris:
            return self.token_uris[token_id]
        raise TokenURIRevertedError(token_id, "ERC721: invalid token ID")

    async def total_supply(self, contract_address) -> int | None:
        return self.supply

    async def block_number(self) -> int:
        return self.head

    async def get_transfer_events(self, contract_address, from_block, to_block):
        if self.fail_logs_from is not None and from_block >= self.fail_logs_from:
            raise LedgerUnavailableError(f"getLogs({from_block}-{to_block}) failed")
        return [e for e in self.transfers if from_block <= e.block_number <= to_block]

    async def get_quest_events(self, contract_address, from_block, to_block):
        return [e for e in self.quest_events if from_block <= e.block_number <= to_block]

    def cleanup(self) -> None:
        pass

    def mint(self, token_id: int, owner: str, payload: dict | None = None) -> None:
        self.owners[token_id] = owner
        self.token_uris[token_id] = make_token_uri(payload or travel_payload(token_id))



def transfer(token_id: int, from_address: str, to_address: str, block: int,
             log_index: int = 0, tx: str | None = None) -> TransferEvent:
    return TransferEvent(
        token_id=str(token_id),
        from_address=from_address,
        to_address=to_address,
        tx_hash=tx or tx_hash(block * 1000 + log_index),
        block_number=block,
        log_index=log_index,
    )


def quest_event(wallet_address: str, timestamp: int, block: int = 100,
                quest_id: int = 1, log_index: int = 0) -> QuestCompletedEvent:
    return QuestCompletedEvent(
        wallet=wallet_address,
        quest_id=quest_id,
        fee=0,
        block_timestamp=timestamp,
        tx_hash=tx_hash(block * 1000 + log_index),
        block_number=block,
        log_index=log_index,
    )
