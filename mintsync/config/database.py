"""
Database configuration.

Async SQLAlchemy engine and session factory shared by the engine.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mintsync.config.settings import settings

async_engine = create_async_engine(
    settings.get_async_database_url(),
    echo=settings.database_echo,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=5,
)

async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Provide a session that is always closed.

    Usage:
        async with get_session() as session:
            await session.execute(...)
    """
    async with async_session_maker() as session:
        yield session
