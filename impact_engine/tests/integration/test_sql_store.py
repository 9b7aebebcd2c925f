"""Integration tests for the SQL store adapter over in-memory SQLite.

Seeds the document store schema through the ORM, then runs raw lookups and
full analyses in both single-session and session-factory modes.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from impact_engine.errors import StoreUnavailableError
from impact_engine.models import RelationKind, Severity
from impact_engine.simulation import DeletionImpactAnalyzer
from impact_engine.state.database import get_session, get_session_factory
from impact_engine.state.sqlite_adapter import create_local_tables, get_local_engine
from impact_engine.state.store import SqlStoreLookup
from impact_engine.state.tables import (
    DocumentChunkTable,
    DocumentEntityTable,
    DocumentReferenceTable,
    DocumentTable,
    EmbeddingTable,
    EntityTable,
    FactTable,
    ProcessingJobTable,
    QualityScoreTable,
)
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

_NOW = datetime(2025, 2, 2, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory document store with one fully processed document."""
    eng = get_local_engine(":memory:")
    await create_local_tables(eng)

    factory = get_session_factory(eng)
    async with factory() as session:
        # Inserted in dependency order; foreign keys are enforced.
        session.add_all(
            [
                DocumentTable(id="D1", name="handbook.pdf", status="COMPLETED"),
                DocumentTable(id="D2", name="summary.md", status="COMPLETED"),
                EntityTable(id="X1", name="Acme Corp", entity_type="organization"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                DocumentChunkTable(id="C1", document_id="D1", chunk_index=0, content="Intro"),
                DocumentChunkTable(id="C2", document_id="D1", chunk_index=1, content="Body"),
                FactTable(id="F1", document_id="D1", subject="Acme", predicate="is", object_="a company"),
                DocumentEntityTable(document_id="D1", entity_id="X1"),
                DocumentEntityTable(document_id="D2", entity_id="X1"),
                DocumentReferenceTable(source_document_id="D2", target_document_id="D1"),
                ProcessingJobTable(id="J1", document_id="D1", status="COMPLETED"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                EmbeddingTable(id="E1", document_id="D1", chunk_id="C1"),
                EmbeddingTable(id="E2", document_id="D1", chunk_id=None),
            ]
        )
        await session.flush()
        session.add_all(
            [
                QualityScoreTable(id="Q1", embedding_id="E1", score=0.9),
                QualityScoreTable(id="Q2", document_id="D1", score=0.7),
            ]
        )
        await session.commit()

    yield eng
    await eng.dispose()


def _labels(edges) -> list[tuple[str, str, RelationKind]]:
    return [(e.to_type, e.to_id, e.relation_kind) for e in edges]


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    @pytest.mark.asyncio
    async def test_requires_exactly_one_source(self, engine: AsyncEngine) -> None:
        factory = get_session_factory(engine)
        with pytest.raises(ValueError, match="exactly one"):
            SqlStoreLookup()
        async with factory() as session:
            with pytest.raises(ValueError, match="exactly one"):
                SqlStoreLookup(session, session_factory=factory)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    @pytest.mark.asyncio
    async def test_document_edges_in_catalog_order(self, engine: AsyncEngine) -> None:
        store = SqlStoreLookup(session_factory=get_session_factory(engine))
        edges = await store.get_edges("document", "D1")
        assert _labels(edges) == [
            ("document_chunk", "C1", RelationKind.OWNS),
            ("document_chunk", "C2", RelationKind.OWNS),
            ("embedding", "E1", RelationKind.OWNS),
            ("embedding", "E2", RelationKind.OWNS),
            ("fact", "F1", RelationKind.OWNS),
            ("quality_score", "Q2", RelationKind.DERIVES_FROM),
            ("entity", "X1", RelationKind.REFERENCES),
            ("document", "D2", RelationKind.REFERENCES),
            ("processing_job", "J1", RelationKind.ASSOCIATED_JOB),
        ]
        assert all(e.source_key == ("document", "D1") for e in edges)

    @pytest.mark.asyncio
    async def test_chunk_and_embedding_edges(self, engine: AsyncEngine) -> None:
        store = SqlStoreLookup(session_factory=get_session_factory(engine))
        assert _labels(await store.get_edges("document_chunk", "C1")) == [
            ("embedding", "E1", RelationKind.DERIVES_FROM)
        ]
        assert _labels(await store.get_edges("embedding", "E1")) == [
            ("quality_score", "Q1", RelationKind.DERIVES_FROM)
        ]
        assert await store.get_edges("document_chunk", "C2") == []

    @pytest.mark.asyncio
    async def test_leaf_type_has_no_edges(self, engine: AsyncEngine) -> None:
        store = SqlStoreLookup(session_factory=get_session_factory(engine))
        assert await store.get_edges("fact", "F1") == []

    @pytest.mark.asyncio
    async def test_exists(self, engine: AsyncEngine) -> None:
        async with get_session(engine) as session:
            store = SqlStoreLookup(session)
            assert await store.exists("document", "D1")
            assert await store.exists("entity", "X1")
            assert not await store.exists("document", "NOPE")
            assert not await store.exists("invoice", "D1")

    @pytest.mark.asyncio
    async def test_count_other_referrers(self, engine: AsyncEngine) -> None:
        store = SqlStoreLookup(session_factory=get_session_factory(engine))
        assert await store.count_other_referrers("entity", "X1", ["D1"]) == 1
        assert await store.count_other_referrers("entity", "X1", ["D1", "D2"]) == 0
        assert await store.count_other_referrers("entity", "X1", []) == 2
        # D2 only cites D1, so nothing else links to it once D1 is gone.
        assert await store.count_other_referrers("document", "D2", ["D1"]) == 0
        assert await store.count_other_referrers("fact", "F1", ["D1"]) == 0

    @pytest.mark.asyncio
    async def test_sql_error_wrapped(self, engine: AsyncEngine) -> None:
        async with engine.begin() as conn:
            await conn.execute(text("DROP TABLE facts"))
        store = SqlStoreLookup(session_factory=get_session_factory(engine))
        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get_edges("document", "D1")
        assert exc_info.value.entity_id == "D1"


# ---------------------------------------------------------------------------
# End-to-end analysis
# ---------------------------------------------------------------------------


class TestAnalysis:
    @pytest.mark.asyncio
    async def test_full_closure_with_shared_session(self, engine: AsyncEngine) -> None:
        async with get_session(engine) as session:
            analyzer = DeletionImpactAnalyzer(SqlStoreLookup(session), clock=lambda: _NOW)
            report = await analyzer.analyze_impact(["D1"])

        assert report.total_affected == 10
        expected = {
            ("document", "D1"): Severity.WILL_DELETE,
            ("document", "D2"): Severity.WILL_ORPHAN,
            ("document_chunk", "C1"): Severity.WILL_DELETE,
            ("document_chunk", "C2"): Severity.WILL_DELETE,
            ("embedding", "E1"): Severity.WILL_DELETE,
            ("embedding", "E2"): Severity.WILL_DELETE,
            ("fact", "F1"): Severity.WILL_DELETE,
            ("quality_score", "Q1"): Severity.WILL_LOSE_DATA,
            ("quality_score", "Q2"): Severity.WILL_LOSE_DATA,
            ("entity", "X1"): Severity.WILL_ORPHAN,
            ("processing_job", "J1"): Severity.INFORMATIONAL,
        }
        assert {(n.entity_type, n.entity_id): n.severity for n in report.iter_nodes()} == expected
        assert report.orphaned_entities == 1
        assert [w for w in report.warnings if "orphaned" in w] == [
            "document 'D2' will be orphaned (document:D1 -[REFERENCES]-> document:D2)"
        ]
        assert report.missing_ids == ()
        # 2s base + 1s document + 2 chunks * 0.1s + 1 fact * 0.05s
        assert report.estimated_time_seconds == 4

    @pytest.mark.asyncio
    async def test_session_modes_agree(self, engine: AsyncEngine) -> None:
        factory_report = await DeletionImpactAnalyzer(
            SqlStoreLookup(session_factory=get_session_factory(engine)), clock=lambda: _NOW
        ).analyze_impact(["D1", "D2"])
        async with get_session(engine) as session:
            session_report = await DeletionImpactAnalyzer(SqlStoreLookup(session), clock=lambda: _NOW).analyze_impact(
                ["D1", "D2"]
            )
        assert factory_report == session_report
        assert factory_report.find("document", "D2").severity == Severity.WILL_DELETE

    @pytest.mark.asyncio
    async def test_missing_document(self, engine: AsyncEngine) -> None:
        store = SqlStoreLookup(session_factory=get_session_factory(engine))
        report = await DeletionImpactAnalyzer(store, clock=lambda: _NOW).analyze_impact(["GHOST"])
        assert report.missing_ids == ("GHOST",)
        assert report.total_affected == 0
