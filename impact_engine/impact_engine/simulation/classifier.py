"""Severity classification of a dependency graph.

Pure function over the traversal result: no store access, no mutation of
the input graph.

Every node is first given an upstream state, computed as two least
fixpoints over the graph:

* *deleted*: a seed, or the dependent of a deleted node through an edge
  whose catalog severity is WILL_DELETE;
* *stale*: not deleted, and either derived from a deleted node through an
  edge whose catalog severity is WILL_LOSE_DATA, or reached through OWNS or
  DERIVES_FROM from a stale node.  Content derived from stale content is
  stale too.

An edge then contributes, based on its upstream's state:

* upstream deleted -> the catalog descriptor's severity for the edge
  (by default OWNS -> WILL_DELETE, DERIVES_FROM -> WILL_LOSE_DATA,
  REFERENCES -> WILL_ORPHAN, anything else INFORMATIONAL);
* upstream stale via OWNS or DERIVES_FROM -> WILL_LOSE_DATA;
* otherwise INFORMATIONAL.

A node's final severity is the maximum of its incoming contributions, so
the report never under-states risk.  Both sets only grow while iterating,
so the result does not depend on the order edges were discovered in, and
cycles terminate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from impact_engine.catalog.relationship_catalog import RelationshipCatalog, default_severity_for
from impact_engine.graph.traversal import DependencyGraph, NodeKey
from impact_engine.models.entities import DependencyEdge, RelationKind, Severity
from impact_engine.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)

_STALENESS_KINDS: frozenset[RelationKind] = frozenset({RelationKind.OWNS, RelationKind.DERIVES_FROM})


@dataclass(frozen=True)
class ClassifiedNode:
    """A graph node with its final severity."""

    entity_type: str
    entity_id: str
    severity: Severity
    relation_path: tuple[str, ...]
    order: int
    is_seed: bool


@dataclass(frozen=True)
class ClassifiedGraph:
    """Classification result; nodes are in discovery order."""

    nodes: tuple[ClassifiedNode, ...]
    missing_seed_ids: tuple[str, ...] = ()

    def get(self, entity_type: str, entity_id: str) -> ClassifiedNode | None:
        for node in self.nodes:
            if node.entity_type == entity_type and node.entity_id == entity_id:
                return node
        return None


def edge_contribution(
    edge: DependencyEdge,
    upstream: Severity,
    catalog: RelationshipCatalog,
) -> Severity:
    """Severity that *edge* contributes to its dependent."""
    if upstream == Severity.WILL_DELETE:
        descriptor = catalog.descriptor_for(edge)
        if descriptor is not None:
            return descriptor.severity
        return default_severity_for(edge.relation_kind)
    if upstream == Severity.WILL_LOSE_DATA and edge.relation_kind in _STALENESS_KINDS:
        return Severity.WILL_LOSE_DATA
    return Severity.INFORMATIONAL


@profile_operation("impact.classify")
def classify(graph: DependencyGraph, catalog: RelationshipCatalog) -> ClassifiedGraph:
    """Assign every node of *graph* its final severity."""
    order = graph.nodes()
    deleted: set[NodeKey] = {key for key in order if graph.is_seed(key)}
    stale: set[NodeKey] = set()

    def state(key: NodeKey) -> Severity:
        if key in deleted:
            return Severity.WILL_DELETE
        if key in stale:
            return Severity.WILL_LOSE_DATA
        return Severity.INFORMATIONAL

    def grow(target: set[NodeKey], tier: Severity) -> int:
        passes = 0
        changed = True
        while changed:
            changed = False
            passes += 1
            for key in order:
                if key in deleted or key in stale:
                    continue
                contributions = (edge_contribution(edge, state(edge.source_key), catalog) for edge in graph.incoming(key))
                if tier in contributions:
                    target.add(key)
                    changed = True
        return passes

    passes = grow(deleted, Severity.WILL_DELETE)
    passes += grow(stale, Severity.WILL_LOSE_DATA)

    severity: dict[NodeKey, Severity] = {}
    for key in order:
        if key in deleted:
            severity[key] = Severity.WILL_DELETE
            continue
        severity[key] = Severity.max_of(
            *(edge_contribution(edge, state(edge.source_key), catalog) for edge in graph.incoming(key))
        )

    logger.debug(
        "Classified %d node(s) in %d pass(es): %d deleted, %d stale",
        len(order),
        passes,
        len(deleted),
        len(stale),
    )

    return ClassifiedGraph(
        nodes=tuple(
            ClassifiedNode(
                entity_type=key[0],
                entity_id=key[1],
                severity=severity[key],
                relation_path=graph.path(key),
                order=graph.order(key),
                is_seed=graph.is_seed(key),
            )
            for key in order
        ),
        missing_seed_ids=tuple(graph.missing_seed_ids),
    )
