"""
Task API — Test Configuration (conftest.py)
============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock async session (no database needed)
    ├── sample_task_data: Field values matching the Task model
    ├── database: Real SQLite schema, created and dropped around the test
    ├── test_client: HTTPX AsyncClient bound to a fresh app (uses `database`)
    ├── lifecycle_events: Captured "taskapi.lifecycle" log messages
    └── fake_listener / fake_storage: Recording lifecycle collaborators
"""

import os
import tempfile

# Override settings BEFORE any taskapi import: the engine is built at import time
_TEST_DB_DIR = tempfile.mkdtemp(prefix="taskapi_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ["LOG_LEVEL"] = "WARNING"

import asyncio  # noqa: E402
import logging  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import List  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_x(mock_db_session):
            mock_db_session.execute.return_value.scalar_one_or_none.return_value = task
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def sample_task_data():
    return {
        "id": uuid4(),
        "title": "Write the deployment notes",
        "completed": False,
        "created_at": datetime.now(timezone.utc),
    }


@pytest_asyncio.fixture
async def database():
    """Creates the schema in the SQLite test database and drops it afterwards."""
    from taskapi.database import Base, engine
    import taskapi.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_client(database):
    """
    HTTPX AsyncClient routed straight to a fresh app instance.

    ASGITransport does not run the lifespan, so no logging reconfiguration
    and no startup probe happen here.
    """
    from taskapi.main import create_app

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ══════════════════════════════════════════════════════════════════════════
# Lifecycle Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def lifecycle_events(caplog):
    """Returns a callable listing the INFO+ messages logged by taskapi.lifecycle."""
    caplog.set_level(logging.INFO, logger="taskapi.lifecycle")

    def events() -> List[str]:
        return [r.getMessage() for r in caplog.records if r.name == "taskapi.lifecycle"]

    return events


class RecordingListener:
    """Listener handle that records calls into a shared journal."""

    def __init__(self, journal: List[str], delay: float = 0.0, error: Exception = None):
        self.journal = journal
        self.delay = delay
        self.error = error
        self.release = None  # set to an asyncio.Event to block until released

    async def stop_accepting(self) -> None:
        self.journal.append("listener:start")
        if self.release is not None:
            await self.release.wait()
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.journal.append("listener:done")


class RecordingStorage:
    """Storage handle that records calls into a shared journal."""

    def __init__(self, journal: List[str], delay: float = 0.0, error: Exception = None):
        self.journal = journal
        self.delay = delay
        self.error = error
        self.release = None

    async def close_connections(self) -> None:
        self.journal.append("storage:start")
        if self.release is not None:
            await self.release.wait()
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.journal.append("storage:done")


@pytest.fixture
def journal() -> List[str]:
    return []


@pytest.fixture
def fake_listener(journal):
    return RecordingListener(journal)


@pytest.fixture
def fake_storage(journal):
    return RecordingStorage(journal)


@pytest.fixture
def make_listener(journal):
    """Factory for listeners sharing the test's journal."""
    def factory(**kwargs) -> RecordingListener:
        return RecordingListener(journal, **kwargs)
    return factory


@pytest.fixture
def make_storage(journal):
    """Factory for storage handles sharing the test's journal."""
    def factory(**kwargs) -> RecordingStorage:
        return RecordingStorage(journal, **kwargs)
    return factory
