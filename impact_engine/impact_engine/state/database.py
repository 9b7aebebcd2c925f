"""Async SQLAlchemy engine and session helpers for the document store.

Engine type is determined by the database URL scheme:
  - ``postgresql+asyncpg://`` → connection-pooled PostgreSQL engine
  - ``sqlite+aiosqlite://``   → SQLite engine (local and test use)

The impact engine is read-only, so sessions handed out here never commit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)


def get_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
    *,
    read_only: bool = False,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine for *database_url*.

    Parameters
    ----------
    database_url:
        Connection string (PostgreSQL or SQLite scheme).
    pool_size:
        Persistent connections for PostgreSQL (ignored for SQLite).
    max_overflow:
        Overflow connections for PostgreSQL (ignored for SQLite).
    read_only:
        Open a SQLite file without creating it.  PostgreSQL sessions are
        always read-only.
    """
    if database_url.startswith("sqlite"):
        from impact_engine.state.sqlite_adapter import get_local_engine

        # sqlite+aiosqlite:///path/to/db
        db_path = database_url.split("///", 1)[-1] if "///" in database_url else ":memory:"
        return get_local_engine(db_path or ":memory:", read_only=read_only)

    engine = create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=10,
        echo=False,
        connect_args={
            "server_settings": {
                "statement_timeout": "30000",  # 30 s
                "default_transaction_read_only": "on",
            }
        },
    )
    logger.info(
        "Created async engine pool_size=%d max_overflow=%d",
        pool_size,
        max_overflow,
    )
    return engine


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def get_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Yield a read session; any open transaction is rolled back on exit."""
    session = get_session_factory(engine)()
    try:
        yield session
    finally:
        await session.rollback()
        await session.close()
