"""Read-only store lookup interface and its adapters.

The engine's only data source is a :class:`StoreLookup`.  Two adapters are
provided:

* :class:`InMemoryStore` -- edges held in memory; used by tests, the CLI
  ``--graph-file`` mode and demos.
* :class:`SqlStoreLookup` -- SQLAlchemy async adapter over the document
  store tables.  Issues ``SELECT`` statements only.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Collection, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from impact_engine.errors import StoreUnavailableError
from impact_engine.models.entities import DependencyEdge, EntityType, RelationKind
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

logger = logging.getLogger(__name__)


@runtime_checkable
class StoreLookup(Protocol):
    """Read-only access to dependency edges."""

    async def get_edges(self, entity_type: str, entity_id: str) -> list[DependencyEdge]:
        """Return edges whose ``from`` side is the given entity, in stable order."""
        ...

    async def exists(self, entity_type: str, entity_id: str) -> bool: ...


@runtime_checkable
class ReferrerCounter(Protocol):
    """Optional store capability used to confirm orphans.

    A store implementing it lets the engine tell an entity that loses its
    last document link apart from one that other documents still link to.
    """

    async def count_other_referrers(self, entity_type: str, entity_id: str, excluding: Collection[str]) -> int:
        """Return how many links to the entity come from documents not in *excluding*."""
        ...


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryStore:
    """Store backed by an ordered list of edges.

    Parameters
    ----------
    edges:
        Dependency edges.  Per source entity, edges are returned in the
        order given here.
    entities:
        Additional ``(entity_type, entity_id)`` pairs that exist but have
        no edges.  Edge endpoints always exist.
    """

    def __init__(
        self,
        edges: Iterable[DependencyEdge] = (),
        entities: Iterable[tuple[str, str]] = (),
    ) -> None:
        self._outgoing: dict[tuple[str, str], list[DependencyEdge]] = {}
        self._incoming: dict[tuple[str, str], list[DependencyEdge]] = {}
        self._entities: set[tuple[str, str]] = set(entities)
        for edge in edges:
            self._outgoing.setdefault(edge.source_key, []).append(edge)
            self._incoming.setdefault(edge.target_key, []).append(edge)
            self._entities.add(edge.source_key)
            self._entities.add(edge.target_key)
        self.lookups: list[tuple[str, str]] = []

    async def get_edges(self, entity_type: str, entity_id: str) -> list[DependencyEdge]:
        self.lookups.append((entity_type, entity_id))
        return list(self._outgoing.get((entity_type, entity_id), ()))

    async def exists(self, entity_type: str, entity_id: str) -> bool:
        self.lookups.append((entity_type, entity_id))
        return (entity_type, entity_id) in self._entities

    async def count_other_referrers(self, entity_type: str, entity_id: str, excluding: Collection[str]) -> int:
        self.lookups.append((entity_type, entity_id))
        return sum(
            1
            for edge in self._incoming.get((entity_type, entity_id), ())
            if edge.from_type == EntityType.DOCUMENT and edge.from_id not in excluding
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryStore:
        """Build a store from ``{"entities": [...], "edges": [...]}``.

        Edges accept either snake_case or camelCase keys; entities are
        ``{"type": ..., "id": ...}`` objects.
        """
        edges = [DependencyEdge.model_validate(e) for e in data.get("edges", [])]
        entities = [(e["type"], e["id"]) for e in data.get("entities", [])]
        return cls(edges, entities)

    @classmethod
    def from_file(cls, path: Path | str) -> InMemoryStore:
        return cls.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _EdgeQuery:
    """How to find dependents of one relation in the document store.

    Selects ``dependent_column`` from rows whose ``key_column`` equals the
    upstream entity id.
    """

    from_type: str
    to_type: str
    kind: RelationKind
    dependent_column: Any
    key_column: Any


_EDGE_QUERIES: tuple[_EdgeQuery, ...] = (
    _EdgeQuery(
        EntityType.DOCUMENT,
        EntityType.DOCUMENT_CHUNK,
        RelationKind.OWNS,
        DocumentChunkTable.id,
        DocumentChunkTable.document_id,
    ),
    _EdgeQuery(
        EntityType.DOCUMENT,
        EntityType.EMBEDDING,
        RelationKind.OWNS,
        EmbeddingTable.id,
        EmbeddingTable.document_id,
    ),
    _EdgeQuery(EntityType.DOCUMENT, EntityType.FACT, RelationKind.OWNS, FactTable.id, FactTable.document_id),
    _EdgeQuery(
        EntityType.DOCUMENT,
        EntityType.QUALITY_SCORE,
        RelationKind.DERIVES_FROM,
        QualityScoreTable.id,
        QualityScoreTable.document_id,
    ),
    _EdgeQuery(
        EntityType.DOCUMENT,
        EntityType.ENTITY,
        RelationKind.REFERENCES,
        DocumentEntityTable.entity_id,
        DocumentEntityTable.document_id,
    ),
    _EdgeQuery(
        EntityType.DOCUMENT,
        EntityType.DOCUMENT,
        RelationKind.REFERENCES,
        DocumentReferenceTable.source_document_id,
        DocumentReferenceTable.target_document_id,
    ),
    _EdgeQuery(
        EntityType.DOCUMENT,
        EntityType.PROCESSING_JOB,
        RelationKind.ASSOCIATED_JOB,
        ProcessingJobTable.id,
        ProcessingJobTable.document_id,
    ),
    _EdgeQuery(
        EntityType.DOCUMENT_CHUNK,
        EntityType.EMBEDDING,
        RelationKind.DERIVES_FROM,
        EmbeddingTable.id,
        EmbeddingTable.chunk_id,
    ),
    _EdgeQuery(
        EntityType.EMBEDDING,
        EntityType.QUALITY_SCORE,
        RelationKind.DERIVES_FROM,
        QualityScoreTable.id,
        QualityScoreTable.embedding_id,
    ),
)

_ID_COLUMNS: dict[str, Any] = {
    EntityType.DOCUMENT: DocumentTable.id,
    EntityType.DOCUMENT_CHUNK: DocumentChunkTable.id,
    EntityType.EMBEDDING: EmbeddingTable.id,
    EntityType.FACT: FactTable.id,
    EntityType.ENTITY: EntityTable.id,
    EntityType.QUALITY_SCORE: QualityScoreTable.id,
    EntityType.PROCESSING_JOB: ProcessingJobTable.id,
}


class SqlStoreLookup:
    """Read-only lookups against the document store tables.

    Pass either a single ``session`` (lookups are serialized, since an
    ``AsyncSession`` does not allow concurrent operations) or a
    ``session_factory`` (each lookup opens its own short-lived session, so
    lookups within a BFS level can run concurrently).
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        if (session is None) == (session_factory is None):
            raise ValueError("Provide exactly one of session or session_factory")
        self._session = session
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _reader(self) -> AsyncIterator[AsyncSession]:
        if self._session is not None:
            async with self._lock:
                yield self._session
            return
        assert self._session_factory is not None
        async with self._session_factory() as session:
            yield session

    async def get_edges(self, entity_type: str, entity_id: str) -> list[DependencyEdge]:
        queries = [q for q in _EDGE_QUERIES if q.from_type == entity_type]
        if not queries:
            return []

        edges: list[DependencyEdge] = []
        try:
            async with self._reader() as session:
                for query in queries:
                    stmt = (
                        select(query.dependent_column)
                        .where(query.key_column == entity_id)
                        .order_by(query.dependent_column)
                    )
                    result = await session.execute(stmt)
                    for dependent_id in result.scalars().all():
                        edges.append(
                            DependencyEdge(
                                from_type=entity_type,
                                from_id=entity_id,
                                to_type=query.to_type,
                                to_id=str(dependent_id),
                                relation_kind=query.kind,
                            )
                        )
        except SQLAlchemyError as exc:
            logger.error("Edge lookup failed for %s:%s: %s", entity_type, entity_id, exc)
            raise StoreUnavailableError(entity_type, entity_id, exc) from exc
        return edges

    async def exists(self, entity_type: str, entity_id: str) -> bool:
        column = _ID_COLUMNS.get(entity_type)
        if column is None:
            return False
        try:
            async with self._reader() as session:
                result = await session.execute(select(column).where(column == entity_id))
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as exc:
            logger.error("Existence check failed for %s:%s: %s", entity_type, entity_id, exc)
            raise StoreUnavailableError(entity_type, entity_id, exc) from exc

    async def count_other_referrers(self, entity_type: str, entity_id: str, excluding: Collection[str]) -> int:
        queries = [q for q in _EDGE_QUERIES if q.from_type == EntityType.DOCUMENT and q.to_type == entity_type]
        if not queries:
            return 0

        total = 0
        try:
            async with self._reader() as session:
                for query in queries:
                    stmt = select(func.count()).where(query.dependent_column == entity_id)
                    if excluding:
                        stmt = stmt.where(query.key_column.not_in(list(excluding)))
                    total += (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as exc:
            logger.error("Referrer count failed for %s:%s: %s", entity_type, entity_id, exc)
            raise StoreUnavailableError(entity_type, entity_id, exc) from exc
        return total
