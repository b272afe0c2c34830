"""Pytest configuration and fixtures for lifesync tests."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import event, JSON, MetaData, Table, Column
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy import String

from lifesync.clock import ManualClock
from lifesync.db.engine import get_session
from lifesync.db.repositories import TrackedProductRepository, UserRepository
from lifesync.services.store import DatabaseTaskStore

# 2023-11-14T22:13:20Z
T0 = 1_700_000_000_000


def _create_sqlite_compatible_metadata():
    """Create a new metadata with SQLite-compatible column types.

    This creates a copy of the models metadata with JSONB replaced by JSON
    and PostgreSQL UUID replaced by String for SQLite compatibility.
    """
    # Import here to avoid circular imports
    from lifesync.db.models import Base

    new_metadata = MetaData()

    for table_name, table in Base.metadata.tables.items():
        columns = []
        for col in table.columns:
            col_type = col.type
            # Replace PostgreSQL-specific types
            if isinstance(col_type, JSONB):
                col_type = JSON()
            elif isinstance(col_type, PG_UUID):
                col_type = String(36)

            new_col = Column(
                col.name,
                col_type,
                *[c.copy() for c in col.constraints if not c._type_bound],
                primary_key=col.primary_key,
                nullable=col.nullable,
                default=col.default,
                server_default=col.server_default,
                autoincrement=False,
            )
            columns.append(new_col)

        Table(
            table_name,
            new_metadata,
            *columns,
        )

    return new_metadata


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create tables using SQLite-compatible metadata
    sqlite_metadata = _create_sqlite_compatible_metadata()

    async with engine.begin() as conn:
        await conn.run_sync(sqlite_metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a database session for testing."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def session_factory(db_engine):
    """Create a session factory for testing."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def clock():
    """A manual clock starting at T0."""
    return ManualClock(start=T0)


@pytest.fixture
def store(session_factory):
    """A TaskStore backed by the test database."""
    return DatabaseTaskStore(session_factory)


@pytest.fixture
def mock_sender():
    """A NotificationSender that accepts every message."""
    sender = MagicMock()
    sender.send = AsyncMock(return_value={"id": "msg-1"})
    return sender


@pytest.fixture
def mock_connection():
    """A connected NatsConnection mock."""
    conn = MagicMock()
    conn.publish = AsyncMock()
    conn.request = AsyncMock(return_value={})
    conn.subscribe_request = AsyncMock()
    conn.connect = AsyncMock()
    conn.close = AsyncMock()
    conn.unsubscribe_all = AsyncMock()
    conn.is_connected = True
    return conn


@pytest.fixture
def make_product(session_factory):
    """Factory creating a user and a product they track."""

    async def _make(
        current_price: float = 80.0,
        original_price: float = 100.0,
        notification_threshold: float | None = None,
        price_alerts_enabled: bool = True,
        whatsapp_enabled: bool = False,
        phone: str | None = None,
        language: str = "en",
    ) -> tuple[str, str]:
        async with get_session(session_factory) as session:
            user = await UserRepository(session).create(
                email="owner@example.com",
                name="Owner",
                phone=phone,
                language=language,
                price_alerts_enabled=price_alerts_enabled,
                whatsapp_enabled=whatsapp_enabled,
            )
            product = await TrackedProductRepository(session).create(
                user_id=user.user_id,
                name="Kettle",
                current_price=current_price,
                original_price=original_price,
                notification_threshold=notification_threshold,
                product_url="https://shop.example.com/kettle",
            )
            return product.product_id, user.user_id

    return _make
