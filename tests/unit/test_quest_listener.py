"""Unit tests for quest crediting and event delivery."""

import asyncio
from datetime import UTC, date, datetime

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, ProgrammingError

from helpers import QUEST_CONTRACT, quest_event, wallet
from mintsync.models.enums import QuestType
from mintsync.services.quest_listener import (
    MappingIdentityResolver,
    QuestCompletionListener,
    QuestEventSubscriber,
    QuestOutcome,
)

LAST_SECOND = int(datetime(2025, 9, 17, 23, 59, 59, tzinfo=UTC).timestamp())
PLAYER = wallet(0xCAFE)


def db_error(cls, message: str):
    return cls("INSERT INTO quest_completions ...", {}, Exception(message))


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    recorded = []

    async def fake_sleep(delay, *args, **kwargs):
        recorded.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


@pytest.fixture
def listener(mock_session, store):
    listener = QuestCompletionListener(mock_session)
    store.wire(listener)
    return listener


class TestQuestCompletionListener:
    """Tests for idempotent, day-keyed crediting."""

    @pytest.mark.asyncio
    async def test_credit_uses_block_timestamp_day(self, listener, store):
        """23:59:59Z credits that day even if processed after midnight."""
        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND))

        assert outcome is QuestOutcome.RECORDED
        row = store.quests[(PLAYER, QuestType.BASE_TRANSACTION.value, date(2025, 9, 17))]
        assert row["points_earned"] == 100
        assert row["completed_at"] == datetime(2025, 9, 17, 23, 59, 59, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_next_second_is_a_new_day(self, listener, store):
        await listener.handle_event(quest_event(PLAYER, LAST_SECOND, block=10))
        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND + 1, block=11))

        assert outcome is QuestOutcome.RECORDED
        assert {key[2] for key in store.quests} == {date(2025, 9, 17), date(2025, 9, 18)}

    @pytest.mark.asyncio
    async def test_same_day_is_credited_once(self, listener, store):
        """Replaying or repeating an event never double-credits."""
        first = await listener.handle_event(quest_event(PLAYER, LAST_SECOND - 3600, block=10))
        second = await listener.handle_event(quest_event(PLAYER, LAST_SECOND, block=12))
        replay = await listener.handle_event(quest_event(PLAYER, LAST_SECOND - 3600, block=10))

        assert first is QuestOutcome.RECORDED
        assert second is QuestOutcome.ALREADY_CREDITED
        assert replay is QuestOutcome.ALREADY_CREDITED
        assert len(store.quests) == 1

    @pytest.mark.asyncio
    async def test_unknown_quest_is_ignored(self, listener, store):
        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND, quest_id=99))

        assert outcome is QuestOutcome.IGNORED
        assert store.quests == {}

    @pytest.mark.asyncio
    async def test_unlinked_wallet_is_ignored(self, mock_session, store):
        listener = QuestCompletionListener(
            mock_session, identity_resolver=MappingIdentityResolver({wallet(1): "user-1"})
        )
        store.wire(listener)

        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND))

        assert outcome is QuestOutcome.IGNORED

    @pytest.mark.asyncio
    async def test_linked_wallet_credits_user(self, mock_session, store):
        listener = QuestCompletionListener(
            mock_session, identity_resolver=MappingIdentityResolver({PLAYER: "user-7"})
        )
        store.wire(listener)

        await listener.handle_event(quest_event(PLAYER.upper().replace("0X", "0x"), LAST_SECOND))

        assert ("user-7", "base_transaction", date(2025, 9, 17)) in store.quests

    @pytest.mark.asyncio
    async def test_transient_failures_retry_with_backoff(self, listener, store, sleeps):
        store.quest_repo.failures = [
            db_error(OperationalError, "server closed the connection unexpectedly"),
            db_error(DBAPIError, "FATAL: too many connections for role"),
        ]

        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND))

        assert outcome is QuestOutcome.RECORDED
        assert sleeps == [1.0, 2.0]
        assert store.quest_repo.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_defer_event(self, listener, store, sleeps, mock_session):
        store.quest_repo.failures = [
            db_error(OperationalError, "connection refused") for _ in range(3)
        ]

        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND))

        assert outcome is QuestOutcome.DEFERRED
        assert sleeps == [1.0, 2.0]
        assert store.quests == {}
        assert mock_session.rollback.await_count == 3

    @pytest.mark.asyncio
    async def test_duplicate_key_error_counts_as_credited(self, listener, store, sleeps):
        store.quest_repo.failures = [
            db_error(
                IntegrityError,
                'duplicate key value violates unique constraint "uq_quest_completions_user_quest_day"',
            )
        ]

        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND))

        assert outcome is QuestOutcome.ALREADY_CREDITED
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_other_constraint_violation_is_rejected(self, listener, store, sleeps):
        store.quest_repo.failures = [
            db_error(IntegrityError, 'new row violates check constraint "points_non_negative"')
        ]

        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND))

        assert outcome is QuestOutcome.REJECTED
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_permanent_store_error_is_not_retried(self, listener, store, sleeps):
        store.quest_repo.failures = [
            db_error(ProgrammingError, 'relation "quest_completions" does not exist')
        ]

        outcome = await listener.handle_event(quest_event(PLAYER, LAST_SECOND))

        assert outcome is QuestOutcome.REJECTED
        assert store.quest_repo.calls == 1


@pytest.fixture
def subscriber(mock_session, store, ledger):
    listener = QuestCompletionListener(mock_session, retry_delay_base=0)
    subscriber = QuestEventSubscriber(
        mock_session, ledger, listener, QUEST_CONTRACT, start_block=1, chunk_size=10
    )
    store.wire(subscriber)
    return subscriber


class TestQuestEventSubscriber:
    """Tests for log-driven delivery and replay."""

    @pytest.mark.asyncio
    async def test_poll_credits_and_advances(self, subscriber, store, ledger):
        ledger.head = 25
        ledger.quest_events = [
            quest_event(wallet(1), LAST_SECOND, block=5),
            quest_event(wallet(2), LAST_SECOND, block=14),
        ]

        stats = await subscriber.poll_once()

        assert stats["recorded"] == 2
        assert stats["to_block"] == 25
        assert store.checkpoints[QUEST_CONTRACT] == 25

    @pytest.mark.asyncio
    async def test_deferred_event_is_replayed(self, subscriber, store, ledger):
        """The checkpoint stops before a deferred event; the next poll retries it."""
        ledger.head = 25
        ledger.quest_events = [
            quest_event(wallet(1), LAST_SECOND, block=5),
            quest_event(wallet(2), LAST_SECOND, block=14),
        ]
        first_call = store.quest_repo.insert_ignore

        async def flaky(**kwargs):
            if kwargs["user_id"] == wallet(2):
                raise db_error(OperationalError, "connection reset")
            return await first_call(**kwargs)

        store.quest_repo.insert_ignore = flaky

        stats = await subscriber.poll_once()

        assert stats["recorded"] == 1
        assert stats["deferred"] == 1
        assert stats["deferred_at"] == 14
        assert store.checkpoints[QUEST_CONTRACT] == 13

        store.quest_repo.insert_ignore = first_call
        stats = await subscriber.poll_once()

        assert stats["from_block"] == 14
        assert stats["recorded"] == 1
        assert store.checkpoints[QUEST_CONTRACT] == 25
        assert len(store.quests) == 2

    @pytest.mark.asyncio
    async def test_nothing_new(self, subscriber, store, ledger):
        store.checkpoints[QUEST_CONTRACT] = 30
        ledger.head = 30

        stats = await subscriber.poll_once()

        assert stats["recorded"] == 0
        assert stats["from_block"] == 31

    @pytest.mark.asyncio
    async def test_run_forever_stops_on_event(self, subscriber, ledger):
        ledger.head = 0
        stop_event = asyncio.Event()
        stop_event.set()

        await subscriber.run_forever(poll_interval=0.01, stop_event=stop_event)
