"""Tests for the breadth-first traversal engine and dependency graph."""

from __future__ import annotations

import asyncio
import random

import pytest
from impact_engine.catalog import default_catalog
from impact_engine.errors import StoreUnavailableError, TruncatedError, ValidationError
from impact_engine.graph import DependencyGraph, TraversalEngine, validate_seeds
from impact_engine.models import DependencyEdge, DocumentRef, RelationKind
from impact_engine.state.store import InMemoryStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _edge(from_key: str, to_key: str, kind: RelationKind) -> DependencyEdge:
    from_type, from_id = from_key.split(":")
    to_type, to_id = to_key.split(":")
    return DependencyEdge(from_type=from_type, from_id=from_id, to_type=to_type, to_id=to_id, relation_kind=kind)


def _seeds(*ids: str) -> list[DocumentRef]:
    return [DocumentRef(entity_id=i) for i in ids]


def _chain(length: int) -> InMemoryStore:
    """document:D0 <- D1 <- ... each referencing the previous one."""
    return InMemoryStore(
        [_edge(f"document:D{i}", f"document:D{i + 1}", RelationKind.REFERENCES) for i in range(length)]
    )


class _DelayedStore(InMemoryStore):
    """Returns results after a random delay so completion order is shuffled."""

    def __init__(self, *args, seed: int = 0, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._rng = random.Random(seed)

    async def get_edges(self, entity_type: str, entity_id: str) -> list[DependencyEdge]:
        await asyncio.sleep(self._rng.uniform(0, 0.005))
        return await super().get_edges(entity_type, entity_id)


class _FailingStore(InMemoryStore):
    def __init__(self, *args, fail_on: tuple[str, str], exc: Exception, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._fail_on = fail_on
        self._exc = exc

    async def get_edges(self, entity_type: str, entity_id: str) -> list[DependencyEdge]:
        if (entity_type, entity_id) == self._fail_on:
            raise self._exc
        return await super().get_edges(entity_type, entity_id)


def _fan_out_edges() -> list[DependencyEdge]:
    return [
        _edge("document:D1", "document_chunk:C1", RelationKind.OWNS),
        _edge("document:D1", "document_chunk:C2", RelationKind.OWNS),
        _edge("document:D1", "embedding:E1", RelationKind.OWNS),
        _edge("document_chunk:C1", "embedding:E2", RelationKind.DERIVES_FROM),
        _edge("document_chunk:C2", "embedding:E3", RelationKind.DERIVES_FROM),
        _edge("embedding:E2", "quality_score:Q1", RelationKind.DERIVES_FROM),
        _edge("document:D1", "fact:F1", RelationKind.OWNS),
        _edge("document:D2", "fact:F2", RelationKind.OWNS),
        _edge("document:D2", "document:D1", RelationKind.REFERENCES),
    ]


def _fan_out_store() -> InMemoryStore:
    return InMemoryStore(_fan_out_edges())


# ---------------------------------------------------------------------------
# Seed validation
# ---------------------------------------------------------------------------


class TestValidateSeeds:
    def test_empty_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_seeds([])
        assert exc_info.value.errors[0]["type"] == "too_short"

    def test_duplicates_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_seeds(_seeds("D1", "D2", "D1"))
        assert exc_info.value.errors == [
            {"loc": ["documentIds", 2], "msg": "Duplicate document ID 'D1'", "type": "duplicate"}
        ]

    def test_distinct_accepted(self) -> None:
        validate_seeds(_seeds("D1", "D2"))


# ---------------------------------------------------------------------------
# DependencyGraph
# ---------------------------------------------------------------------------


class TestDependencyGraph:
    def test_discovery_order_and_attributes(self) -> None:
        graph = DependencyGraph(_seeds("D1"))
        graph.add_seed(("document", "D1"))
        graph.add_node(("fact", "F1"), 1, ("document:D1 -[OWNS]-> fact:F1",))
        assert graph.nodes() == [("document", "D1"), ("fact", "F1")]
        assert graph.is_seed(("document", "D1"))
        assert not graph.is_seed(("fact", "F1"))
        assert graph.depth(("fact", "F1")) == 1
        assert graph.order(("fact", "F1")) == 1

    def test_duplicate_node_rejected(self) -> None:
        graph = DependencyGraph(_seeds("D1"))
        graph.add_seed(("document", "D1"))
        with pytest.raises(ValueError, match="already in graph"):
            graph.add_node(("document", "D1"), 1, ())

    def test_parallel_edges_kept(self) -> None:
        graph = DependencyGraph(_seeds("D1"))
        graph.add_seed(("document", "D1"))
        graph.add_node(("entity", "X"), 1, ())
        graph.add_edge(_edge("document:D1", "entity:X", RelationKind.OWNS))
        graph.add_edge(_edge("document:D1", "entity:X", RelationKind.REFERENCES))
        assert graph.edge_count == 2
        assert {e.relation_kind for e in graph.incoming(("entity", "X"))} == {
            RelationKind.OWNS,
            RelationKind.REFERENCES,
        }


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


class TestTraversal:
    @pytest.mark.asyncio
    async def test_closure_in_bfs_order(self) -> None:
        engine = TraversalEngine(_fan_out_store(), default_catalog())
        graph = await engine.traverse(_seeds("D1"))
        assert graph.nodes() == [
            ("document", "D1"),
            ("document_chunk", "C1"),
            ("document_chunk", "C2"),
            ("embedding", "E1"),
            ("fact", "F1"),
            ("embedding", "E2"),
            ("embedding", "E3"),
            ("quality_score", "Q1"),
        ]
        assert graph.depth(("quality_score", "Q1")) == 3

    @pytest.mark.asyncio
    async def test_relation_path_from_nearest_seed(self) -> None:
        engine = TraversalEngine(_fan_out_store(), default_catalog())
        graph = await engine.traverse(_seeds("D1"))
        assert graph.path(("document", "D1")) == ()
        assert graph.path(("quality_score", "Q1")) == (
            "document:D1 -[OWNS]-> document_chunk:C1",
            "document_chunk:C1 -[DERIVES_FROM]-> embedding:E2",
            "embedding:E2 -[DERIVES_FROM]-> quality_score:Q1",
        )

    @pytest.mark.asyncio
    async def test_seed_discovered_again_is_not_duplicated(self) -> None:
        engine = TraversalEngine(_fan_out_store(), default_catalog())
        graph = await engine.traverse(_seeds("D2", "D1"))
        keys = graph.nodes()
        assert len(keys) == len(set(keys))
        assert graph.is_seed(("document", "D1"))
        assert graph.path(("document", "D1")) == ()

    @pytest.mark.asyncio
    async def test_cycle_terminates(self) -> None:
        store = InMemoryStore(
            [
                _edge("document:A", "document:B", RelationKind.REFERENCES),
                _edge("document:B", "document:A", RelationKind.REFERENCES),
            ]
        )
        graph = await TraversalEngine(store, default_catalog()).traverse(_seeds("A"))
        assert graph.nodes() == [("document", "A"), ("document", "B")]
        assert graph.edge_count == 2
        assert len(graph.incoming(("document", "A"))) == 1

    @pytest.mark.asyncio
    async def test_missing_seed_recorded(self) -> None:
        engine = TraversalEngine(_fan_out_store(), default_catalog())
        graph = await engine.traverse(_seeds("D1", "GHOST"))
        assert graph.missing_seed_ids == ["GHOST"]
        assert ("document", "GHOST") in graph

    @pytest.mark.asyncio
    async def test_leaf_types_never_queried(self) -> None:
        store = _fan_out_store()
        await TraversalEngine(store, default_catalog()).traverse(_seeds("D1"))
        queried_types = {entity_type for entity_type, _ in store.lookups}
        assert "fact" not in queried_types
        assert "quality_score" not in queried_types

    @pytest.mark.asyncio
    async def test_undeclared_edge_skipped(self) -> None:
        store = InMemoryStore(
            [
                _edge("document:D1", "fact:F1", RelationKind.OWNS),
                _edge("document:D1", "invoice:I1", RelationKind.OWNS),
            ]
        )
        graph = await TraversalEngine(store, default_catalog()).traverse(_seeds("D1"))
        assert ("invoice", "I1") not in graph
        assert ("fact", "F1") in graph

    @pytest.mark.asyncio
    async def test_edge_from_wrong_source_ignored(self) -> None:
        class _Leaky(InMemoryStore):
            async def get_edges(self, entity_type: str, entity_id: str) -> list[DependencyEdge]:
                return [_edge("document:OTHER", "fact:F9", RelationKind.OWNS)]

        graph = await TraversalEngine(_Leaky(entities=[("document", "D1")]), default_catalog()).traverse(
            _seeds("D1")
        )
        assert len(graph) == 1

    @pytest.mark.asyncio
    async def test_empty_seeds_make_no_store_call(self) -> None:
        store = _fan_out_store()
        with pytest.raises(ValidationError):
            await TraversalEngine(store, default_catalog()).traverse([])
        assert store.lookups == []


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------


class TestBounds:
    @pytest.mark.asyncio
    async def test_chain_within_depth(self) -> None:
        graph = await TraversalEngine(_chain(3), default_catalog(), max_depth=3).traverse(_seeds("D0"))
        assert len(graph) == 4

    @pytest.mark.asyncio
    async def test_depth_exceeded(self) -> None:
        engine = TraversalEngine(_chain(4), default_catalog(), max_depth=3)
        with pytest.raises(TruncatedError) as exc_info:
            await engine.traverse(_seeds("D0"))
        assert exc_info.value.reason == "depth"
        assert exc_info.value.limit == 3
        assert (exc_info.value.entity_type, exc_info.value.entity_id) == ("document", "D4")
        assert exc_info.value.to_dict()["kind"] == "truncated"

    @pytest.mark.asyncio
    async def test_node_limit_exceeded(self) -> None:
        engine = TraversalEngine(_fan_out_store(), default_catalog(), max_nodes=4)
        with pytest.raises(TruncatedError) as exc_info:
            await engine.traverse(_seeds("D1"))
        assert exc_info.value.reason == "fan_out"
        assert exc_info.value.limit == 4


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------


class TestStoreFailure:
    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self) -> None:
        store = _FailingStore(
            _fan_out_edges(),
            fail_on=("document_chunk", "C2"),
            exc=ConnectionError("socket closed"),
        )
        with pytest.raises(StoreUnavailableError) as exc_info:
            await TraversalEngine(store, default_catalog()).traverse(_seeds("D1"))
        assert exc_info.value.entity_id == "C2"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_store_unavailable_passes_through(self) -> None:
        original = StoreUnavailableError("document", "D1")
        store = _FailingStore(entities=[("document", "D1")], fail_on=("document", "D1"), exc=original)
        with pytest.raises(StoreUnavailableError) as exc_info:
            await TraversalEngine(store, default_catalog()).traverse(_seeds("D1"))
        assert exc_info.value is original


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestDeterminism:
    @pytest.mark.asyncio
    async def test_order_independent_of_completion_order(self) -> None:
        flat = _fan_out_edges()

        serial = await TraversalEngine(InMemoryStore(flat), default_catalog(), lookup_concurrency=1).traverse(
            _seeds("D2", "D1")
        )
        for seed in range(5):
            store = _DelayedStore(flat, seed=seed)
            graph = await TraversalEngine(store, default_catalog(), lookup_concurrency=8).traverse(_seeds("D2", "D1"))
            assert graph.nodes() == serial.nodes()
            assert [graph.path(k) for k in graph.nodes()] == [serial.path(k) for k in serial.nodes()]
