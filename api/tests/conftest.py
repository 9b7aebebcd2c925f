"""Shared fixtures for deletion impact API tests.

Provides an in-memory seeded document store, the FastAPI app with its
database/catalog/settings dependencies overridden, and an httpx client
bound to it through ``ASGITransport``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from impact_engine.catalog import default_catalog
from impact_engine.config import Settings
from impact_engine.state.database import get_session_factory
from impact_engine.state.sqlite_adapter import create_local_tables, get_local_engine
from impact_engine.state.tables import (
    DocumentChunkTable,
    DocumentReferenceTable,
    DocumentTable,
    EmbeddingTable,
    QualityScoreTable,
)
from sqlalchemy.ext.asyncio import AsyncEngine

from api.dependencies import get_catalog, get_db_session, get_engine_settings
from api.main import create_app

# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def store_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory store: D1 owns chunk C1 and embedding E1 (scored by Q1); D2 cites D1."""
    engine = get_local_engine(":memory:")
    await create_local_tables(engine)
    factory = get_session_factory(engine)
    async with factory() as session:
        session.add_all(
            [
                DocumentTable(id="D1", name="handbook.pdf"),
                DocumentTable(id="D2", name="summary.md"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                DocumentChunkTable(id="C1", document_id="D1"),
                DocumentReferenceTable(source_document_id="D2", target_document_id="D1"),
            ]
        )
        await session.flush()
        session.add(EmbeddingTable(id="E1", document_id="D1", chunk_id="C1"))
        await session.flush()
        session.add(QualityScoreTable(id="Q1", embedding_id="E1", score=0.8))
        await session.commit()

    yield engine
    await engine.dispose()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine_settings() -> Settings:
    return Settings()


@pytest.fixture()
def app(store_engine: AsyncEngine, engine_settings: Settings):
    """App with the store, catalog and engine settings injected."""
    application = create_app()
    factory = get_session_factory(store_engine)

    async def _session():
        async with factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = _session
    application.dependency_overrides[get_catalog] = default_catalog
    application.dependency_overrides[get_engine_settings] = lambda: engine_settings
    return application


@pytest_asyncio.fixture()
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
