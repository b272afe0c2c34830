"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lifesync.config import Settings


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for create_async_engine.

    Pool sizing and asyncpg timeouts only apply to PostgreSQL; other backends
    (aiosqlite in tests and local runs) get SQLAlchemy's default pool.
    """
    options: dict[str, Any] = {"echo": settings.db_echo}
    if make_url(settings.database_url).get_backend_name() != "postgresql":
        return options

    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_timeout=30,
        connect_args={
            "command_timeout": settings.db_command_timeout,
            "server_settings": {
                "statement_timeout": str(settings.db_statement_timeout),
            },
        },
    )
    return options


def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, **engine_options(settings))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after commit."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit when the block exits cleanly, else roll back.

    Example:
        async with get_session(session_factory) as session:
            await ScheduledTaskRepository(session).claim(task_id, version, now)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
