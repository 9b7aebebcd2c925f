"""SQLite adapter for local and test use of the document store.

Provides an async SQLAlchemy engine backed by ``aiosqlite`` over the same
ORM tables as the PostgreSQL backend, so the analyzer's SQL lookups run
unchanged against a local file or an in-memory database.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def get_local_engine(db_path: Path | str = ".deletion-impact/state.db", *, read_only: bool = False) -> AsyncEngine:
    """Create an async engine backed by SQLite via aiosqlite.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file; parent directories are created.
        ``:memory:`` gives an ephemeral database shared by every session of
        the returned engine.
    read_only:
        Open an existing file with ``mode=ro``.  Nothing is created on
        disk; a missing file fails on first connect.
    """
    if str(db_path) == ":memory:":
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        url = "sqlite+aiosqlite:///:memory:"
    elif read_only:
        url = f"sqlite+aiosqlite:///file:{Path(db_path)}?mode=ro&uri=true"
        engine = create_async_engine(url, echo=False, connect_args={"check_same_thread": False})
    else:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite+aiosqlite:///{path}"
        engine = create_async_engine(url, echo=False, connect_args={"check_same_thread": False})

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn: object, _: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Created SQLite engine: %s", url)
    return engine


async def create_local_tables(engine: AsyncEngine) -> None:
    """Create all document store tables.  Idempotent."""
    from impact_engine.state.tables import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("SQLite tables created/verified")
