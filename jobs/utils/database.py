"""Database access for worker tasks."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mintsync.config.settings import settings


def create_task_engine():
    """Engine without a pool: each task owns its connections."""
    return create_async_engine(
        settings.get_async_database_url(),
        echo=False,
        poolclass=NullPool,
    )


def create_task_session_maker(engine=None):
    """Session maker for tasks."""
    if engine is None:
        engine = create_task_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def task_session() -> AsyncIterator[AsyncSession]:
    """
    Session on a private NullPool engine, disposed on exit.

    Each worker run opens its own so that no two workers share a
    connection or a transaction.
    """
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    try:
        async with session_maker() as session:
            yield session
    finally:
        await engine.dispose()
