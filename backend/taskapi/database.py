"""
Task API — Database Session Management
=======================================

What:  Async SQLAlchemy engine, session factory, FastAPI dependency, and the
       storage-connection handle closed by the lifecycle coordinator.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
When:  Engine is created at module import; sessions are created per-request;
       the pool is disposed exactly once, after the HTTP listener has drained.

Connection Pooling:
    PostgreSQL (asyncpg) uses a queue pool sized from settings.
    SQLite (aiosqlite, test suite) uses NullPool: a connection per checkout,
    so no connection outlives the event loop that opened it.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from taskapi.config import settings
from taskapi.exceptions import StorageCloseError

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    if settings.is_sqlite:
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": settings.db_pool_pre_ping,
        "pool_recycle": 3600,
    }


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    echo=settings.log_level == "DEBUG",
    **_engine_options(),
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit, so route
# handlers can serialize the instance once the session is gone
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def check_database_connection(target: AsyncEngine = engine) -> bool:
    """
    Probe the database once with SELECT 1.

    What:  Startup connectivity check and /health probe.
    Returns True when the round-trip succeeds. Never raises: an unreachable
    database is reported through the return value and a log line, and the
    caller decides whether that matters. At startup it does not: the
    service keeps accepting requests and each one fails on its own.
    """
    try:
        async with target.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database connection error: %s", str(e))
        return False
    return True


class DatabaseConnection:
    """
    Storage-connection handle owned by the lifecycle coordinator.

    Wraps an AsyncEngine so the coordinator only sees `close_connections()`.
    """

    def __init__(self, target: AsyncEngine = engine):
        self._engine = target

    async def close_connections(self) -> None:
        """
        Dispose the engine, closing every pooled connection.

        Raises:
            StorageCloseError: the driver failed while closing connections.
        """
        try:
            await self._engine.dispose()
        except Exception as e:
            raise StorageCloseError(
                message=f"Database connection failed to close: {e}",
                context={"error_type": type(e).__name__},
            ) from e
