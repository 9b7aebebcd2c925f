"""Breadth-first dependency closure over the document store.

Starting from the requested documents, the engine follows every edge the
relationship catalog declares, level by level, and records the result in a
:class:`DependencyGraph`.  Traversal is read-only and all-or-nothing: any
store failure, bound violation or cancellation aborts the whole walk and
no partial graph is returned.

Determinism: lookups inside one BFS level may run concurrently, but their
results are merged in frontier order (seed order first, then the order the
store returned edges), never in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection, Sequence
from typing import Any, TypeVar

import networkx as nx

from impact_engine.cancellation import CancellationToken
from impact_engine.catalog.relationship_catalog import RelationshipCatalog
from impact_engine.errors import ImpactAnalysisError, StoreUnavailableError, TruncatedError, ValidationError
from impact_engine.models.entities import DependencyEdge, DocumentRef
from impact_engine.state.store import ReferrerCounter, StoreLookup
from impact_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)

NodeKey = tuple[str, str]
T = TypeVar("T")

_DEFAULT_MAX_DEPTH: int = 25
_DEFAULT_MAX_NODES: int = 10_000
_DEFAULT_LOOKUP_CONCURRENCY: int = 8


# ---------------------------------------------------------------------------
# Dependency graph
# ---------------------------------------------------------------------------


class DependencyGraph:
    """Directed dependency graph rooted at the requested documents.

    Nodes are ``(entity_type, entity_id)`` keys carrying ``depth``,
    ``order`` (discovery index), ``path`` (edge labels from the nearest
    seed) and ``is_seed``.  Edges point from the entity depended upon to the
    dependent and carry the originating :class:`DependencyEdge`; parallel
    edges with different relation kinds are kept.
    """

    def __init__(self, seeds: Sequence[DocumentRef]) -> None:
        self.seeds: tuple[DocumentRef, ...] = tuple(seeds)
        self.missing_seed_ids: list[str] = []
        self._graph = nx.MultiDiGraph()

    # -- construction -------------------------------------------------

    def add_seed(self, key: NodeKey) -> None:
        self._add(key, depth=0, path=(), is_seed=True)

    def add_node(self, key: NodeKey, depth: int, path: tuple[str, ...]) -> None:
        self._add(key, depth=depth, path=path, is_seed=False)

    def _add(self, key: NodeKey, *, depth: int, path: tuple[str, ...], is_seed: bool) -> None:
        if key in self._graph:
            raise ValueError(f"Node {key} already in graph")
        self._graph.add_node(key, depth=depth, order=self._graph.number_of_nodes(), path=path, is_seed=is_seed)

    def add_edge(self, edge: DependencyEdge) -> None:
        self._graph.add_edge(edge.source_key, edge.target_key, key=edge.relation_kind.value, edge=edge)

    # -- queries ------------------------------------------------------

    def __contains__(self, key: object) -> bool:
        return key in self._graph

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def nodes(self) -> list[NodeKey]:
        """Return node keys in discovery order."""
        return sorted(self._graph.nodes, key=lambda k: self._graph.nodes[k]["order"])

    def depth(self, key: NodeKey) -> int:
        return self._graph.nodes[key]["depth"]

    def order(self, key: NodeKey) -> int:
        return self._graph.nodes[key]["order"]

    def path(self, key: NodeKey) -> tuple[str, ...]:
        return self._graph.nodes[key]["path"]

    def is_seed(self, key: NodeKey) -> bool:
        return self._graph.nodes[key]["is_seed"]

    def incoming(self, key: NodeKey) -> list[DependencyEdge]:
        """Return every recorded edge landing on *key*."""
        return [data["edge"] for _, _, data in self._graph.in_edges(key, data=True)]


# ---------------------------------------------------------------------------
# Traversal engine
# ---------------------------------------------------------------------------


def validate_seeds(seeds: Sequence[DocumentRef]) -> None:
    """Reject empty or duplicated seed sequences."""
    if not seeds:
        raise ValidationError.single(["documentIds"], "At least one document ID is required", "too_short")
    seen: set[str] = set()
    errors: list[dict[str, Any]] = []
    for index, seed in enumerate(seeds):
        if seed.entity_id in seen:
            errors.append(
                {
                    "loc": ["documentIds", index],
                    "msg": f"Duplicate document ID '{seed.entity_id}'",
                    "type": "duplicate",
                }
            )
        seen.add(seed.entity_id)
    if errors:
        raise ValidationError(errors)


class TraversalEngine:
    """Compute the dependency closure of a set of documents.

    Parameters
    ----------
    store:
        Read-only lookup used as the sole data source.
    catalog:
        Relationship catalog deciding which edges are followed.
    max_depth:
        Maximum number of hops from a seed.  Discovering a node beyond
        this depth raises :class:`TruncatedError`.
    max_nodes:
        Maximum graph size including seeds.
    lookup_concurrency:
        Maximum concurrent store lookups within one BFS level.
    """

    def __init__(
        self,
        store: StoreLookup,
        catalog: RelationshipCatalog,
        *,
        max_depth: int = _DEFAULT_MAX_DEPTH,
        max_nodes: int = _DEFAULT_MAX_NODES,
        lookup_concurrency: int = _DEFAULT_LOOKUP_CONCURRENCY,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._max_depth = max_depth
        self._max_nodes = max_nodes
        self._lookup_concurrency = lookup_concurrency

    @profile_operation("impact.traverse")
    async def traverse(
        self,
        seeds: Sequence[DocumentRef],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> DependencyGraph:
        """Walk every declared dependency reachable from *seeds*.

        Raises
        ------
        ValidationError
            *seeds* is empty or contains duplicates (before any store call).
        StoreUnavailableError
            Any store lookup failed.
        TruncatedError
            The walk exceeded ``max_depth`` or ``max_nodes``.
        AnalysisCancelledError
            *cancel_token* fired or its deadline passed.
        """
        validate_seeds(seeds)
        token = cancel_token or CancellationToken()
        semaphore = asyncio.Semaphore(self._lookup_concurrency)
        graph = DependencyGraph(seeds)

        logger.info("Starting impact traversal from %d seed(s)", len(seeds))

        present = await self._gather(
            [self._lookup(self._store.exists, seed.key, token, semaphore) for seed in seeds]
        )
        for seed, exists in zip(seeds, present):
            graph.add_seed(seed.key)
            if not exists:
                graph.missing_seed_ids.append(seed.entity_id)
        if graph.missing_seed_ids:
            logger.warning("Requested documents not found in store: %s", ", ".join(graph.missing_seed_ids))

        frontier: list[NodeKey] = [seed.key for seed in seeds]
        depth = 0
        while frontier:
            token.raise_if_cancelled()

            # Types without declared dependents are never queried.
            expandable = [key for key in frontier if self._catalog.edges_for(key[0])]
            results = await self._gather(
                [self._lookup(self._store.get_edges, key, token, semaphore) for key in expandable]
            )

            next_frontier: list[NodeKey] = []
            for key, edges in zip(expandable, results):
                parent_path = graph.path(key)
                for edge in edges:
                    if edge.source_key != key:
                        logger.warning("Store returned edge %s for lookup of %s:%s; ignored", edge.label(), *key)
                        continue
                    if not self._catalog.allows(edge):
                        logger.debug("Edge %s not declared in catalog; skipped", edge.label())
                        continue

                    target = edge.target_key
                    if target not in graph:
                        if depth + 1 > self._max_depth:
                            raise TruncatedError("depth", self._max_depth, *target)
                        if len(graph) >= self._max_nodes:
                            raise TruncatedError("fan_out", self._max_nodes, *target)
                        graph.add_node(target, depth + 1, parent_path + (edge.label(),))
                        next_frontier.append(target)
                    graph.add_edge(edge)

            logger.debug(
                "BFS level %d: expanded %d node(s), discovered %d new",
                depth,
                len(expandable),
                len(next_frontier),
            )
            frontier = next_frontier
            depth += 1

        logger.info(
            "Impact traversal finished: %d node(s), %d edge(s), depth %d",
            len(graph),
            graph.edge_count,
            depth - 1,
        )
        return graph

    async def still_referenced(
        self,
        keys: Collection[NodeKey],
        seeds: Sequence[DocumentRef],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> set[NodeKey]:
        """Return the subset of *keys* that documents outside *seeds* still link to.

        Without a store that can count referrers every key is assumed to
        lose its last link, so the result is empty.
        """
        if not keys or not isinstance(self._store, ReferrerCounter):
            return set()

        token = cancel_token or CancellationToken()
        semaphore = asyncio.Semaphore(self._lookup_concurrency)
        excluded = frozenset(seed.entity_id for seed in seeds)
        store = self._store

        async def count(entity_type: str, entity_id: str) -> int:
            return await store.count_other_referrers(entity_type, entity_id, excluded)

        ordered = list(keys)
        counts = await self._gather([self._lookup(count, key, token, semaphore) for key in ordered])
        shared = {key for key, referrers in zip(ordered, counts) if referrers > 0}
        logger.debug("%d of %d orphan candidate(s) still referenced elsewhere", len(shared), len(ordered))
        return shared

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _lookup(
        op: Callable[[str, str], Awaitable[T]],
        key: NodeKey,
        token: CancellationToken,
        semaphore: asyncio.Semaphore,
    ) -> T:
        async with semaphore:
            try:
                return await token.guard(op(*key))
            except ImpactAnalysisError:
                raise
            except Exception as exc:
                logger.error("Store lookup failed for %s:%s: %s", key[0], key[1], exc)
                raise StoreUnavailableError(key[0], key[1], exc) from exc

    @staticmethod
    async def _gather(coros: list[Awaitable[T]]) -> list[T]:
        """Run *coros* concurrently; results keep input order.

        On the first failure the remaining lookups are cancelled before the
        error propagates.
        """
        tasks = [asyncio.ensure_future(c) for c in coros]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
