"""
Pytest configuration and fixtures.
"""

import os

# Must be set before statuspulse.core.database creates its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("COLLECTOR_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Tuple

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from statuspulse.core.database import Base
from statuspulse.core.exceptions import DeliveryFailed
from statuspulse.events.schemas import BaseEvent
import statuspulse.models  # noqa: F401  (registers tables with Base)
from statuspulse.services.notifier import Notifier
from statuspulse.services.recipients import Recipient

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Controllable clock injected wherever services take ``clock=``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingChannel:
    """Delivery channel that records deliveries and can be told to fail."""

    def __init__(self):
        self.delivered: List[Tuple[Recipient, BaseEvent]] = []
        self.fail_for: set = set()

    async def deliver(self, recipient: Recipient, event: BaseEvent) -> None:
        if recipient.ledger_key in self.fail_for:
            raise DeliveryFailed(recipient.ledger_key, "simulated outage")
        self.delivered.append((recipient, event))

    def keys(self) -> List[str]:
        return [r.ledger_key for r, _ in self.delivered]


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def file_engine(tmp_path):
    """
    File-backed database with one connection per session.

    Unlike the in-memory engine, sessions here run in separate transactions,
    so concurrent callers contend on the database the way they do in
    production. Transactions start with BEGIN IMMEDIATE; SQLite then queues
    writers on its busy timeout instead of failing a lock upgrade.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'statuspulse.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Returns the session factory for testing."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 6, 1, 12, 5, tzinfo=timezone.utc))


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def notifier(session_factory, channel) -> Notifier:
    return Notifier(session_factory, channel)


@pytest.fixture
async def client(session_factory, notifier, clock) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with the app's collaborators overridden.
    """
    from statuspulse.api.deps import (
        get_notifier,
        get_registry,
        get_report_service,
        get_session_factory,
    )
    from statuspulse.main import app
    from statuspulse.services.report_service import ReportService
    from statuspulse.workers.intervals import IntervalRegistry

    registry = IntervalRegistry(session_factory)
    await registry.load()
    report_service = ReportService(session_factory, notifier, clock=clock)

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_report_service] = lambda: report_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
