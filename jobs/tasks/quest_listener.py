"""
Quest listener task.

Long-lived delivery of QuestCompleted events from the quest manager
contract to the completion ledger.
"""

import asyncio

import dramatiq
from loguru import logger

import jobs.broker  # noqa: F401
from jobs.async_runner import run_async
from jobs.health import record_run
from jobs.utils.database import task_session
from mintsync.config.settings import settings
from mintsync.services.ledger import LedgerReader, create_ledger_reader
from mintsync.services.quest_listener import (
    QuestCompletionListener,
    QuestEventSubscriber,
)


def build_subscriber(session, reader: LedgerReader) -> QuestEventSubscriber:
    """Wire the subscriber and listener from application settings."""
    listener = QuestCompletionListener(session)
    return QuestEventSubscriber(
        session,
        reader,
        listener,
        settings.quest_contract_address,
        start_block=settings.quest_start_block,
        chunk_size=settings.scan_chunk_size,
        block_confirmations=settings.block_confirmations,
    )


@dramatiq.actor(max_retries=0, time_limit=600_000)  # 10 min
def poll_quest_events() -> None:
    """Deliver pending quest events once, on demand."""
    run_async(run_quest_poll())


async def run_quest_poll() -> dict:
    """
    One poll of the quest contract.

    Returns:
        Outcome counts dict
    """
    if not settings.quest_contract_address:
        return {"success": False, "error": "QUEST_CONTRACT_ADDRESS not set"}

    reader = create_ledger_reader()
    try:
        async with task_session() as session:
            stats = await build_subscriber(session, reader).poll_once()
            stats["success"] = True
    except Exception as e:
        logger.exception(f"[QuestListener] Poll failed: {e}")
        stats = {"success": False, "error": str(e)}
    finally:
        reader.cleanup()

    record_run("quest_listener", stats)
    return stats


async def run_quest_listener(stop_event: asyncio.Event) -> None:
    """
    Listen until `stop_event` is set.

    Args:
        stop_event: Set to stop the listener
    """
    if not settings.quest_contract_address:
        logger.info("[QuestListener] Disabled: QUEST_CONTRACT_ADDRESS not set")
        return

    reader = create_ledger_reader()
    try:
        async with task_session() as session:
            subscriber = build_subscriber(session, reader)
            await subscriber.run_forever(
                settings.quest_poll_interval_seconds, stop_event
            )
    finally:
        reader.cleanup()
