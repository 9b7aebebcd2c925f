"""Aggregate a classified graph into an :class:`ImpactReport`."""

from __future__ import annotations

import math
from collections.abc import Collection, Sequence
from datetime import datetime

from impact_engine.models.entities import DocumentRef, EntityType, ImpactNode, Severity
from impact_engine.models.report import ImpactReport
from impact_engine.graph.traversal import NodeKey
from impact_engine.simulation.classifier import ClassifiedGraph, ClassifiedNode

# Deletion-time estimate: fixed overhead plus per-entity cost for entities
# that will actually be removed.  Types not listed cost nothing.
_BASE_DELETION_SECONDS: float = 2.0
_DELETION_SECONDS_PER_ENTITY: dict[str, float] = {
    EntityType.DOCUMENT: 1.0,
    EntityType.DOCUMENT_CHUNK: 0.1,
    EntityType.FACT: 0.05,
}

_SEVERITY_PHRASES: dict[Severity, str] = {
    Severity.WILL_DELETE: "will be deleted",
    Severity.WILL_ORPHAN: "will be orphaned",
    Severity.WILL_LOSE_DATA: "will lose derived data",
    Severity.INFORMATIONAL: "informational",
}


def build(
    classified: ClassifiedGraph,
    requested: Sequence[DocumentRef],
    *,
    generated_at: datetime,
    still_referenced: Collection[NodeKey] = (),
) -> ImpactReport:
    """Build the impact report for *classified*.

    Type groups appear in the order their first node was discovered (so
    the seeds' type comes first); nodes within a group are ordered by
    severity descending, then discovery order.

    WILL_ORPHAN nodes listed in *still_referenced* keep their severity but
    are neither warned about nor counted as orphaned, since documents
    outside the deletion set still link to them.
    """
    groups: dict[str, list[ClassifiedNode]] = {}
    for node in classified.nodes:
        groups.setdefault(node.entity_type, []).append(node)

    nodes_by_type: dict[str, tuple[ImpactNode, ...]] = {}
    for entity_type, members in groups.items():
        members.sort(key=lambda n: (-n.severity.rank, n.order))
        nodes_by_type[entity_type] = tuple(
            ImpactNode(
                entity_type=n.entity_type,
                entity_id=n.entity_id,
                severity=n.severity,
                relation_path=n.relation_path,
            )
            for n in members
        )

    affected = [n for n in classified.nodes if not n.is_seed]
    orphaned = [
        n
        for n in classified.nodes
        if n.severity == Severity.WILL_ORPHAN and (n.entity_type, n.entity_id) not in still_referenced
    ]
    counts_by_severity = {s: 0 for s in Severity.descending()}
    for node in classified.nodes:
        counts_by_severity[node.severity] += 1

    return ImpactReport(
        requested_ids=tuple(requested),
        total_affected=len(affected),
        nodes_by_type=nodes_by_type,
        generated_at=generated_at,
        counts_by_type={t: len(nodes) for t, nodes in nodes_by_type.items()},
        counts_by_severity=counts_by_severity,
        missing_ids=classified.missing_seed_ids,
        warnings=tuple(_warnings(classified, orphaned)),
        orphaned_entities=len(orphaned),
        estimated_time_seconds=_estimate_deletion_seconds(classified.nodes),
        summary=_summary(len(requested), affected),
    )


def _warnings(classified: ClassifiedGraph, orphaned: Sequence[ClassifiedNode]) -> list[str]:
    warnings = [f"document '{doc_id}' was not found in the store" for doc_id in classified.missing_seed_ids]
    for node in orphaned:
        via = f" ({node.relation_path[-1]})" if node.relation_path else ""
        warnings.append(f"{node.entity_type} '{node.entity_id}' will be orphaned{via}")
    return warnings


def _estimate_deletion_seconds(nodes: Sequence[ClassifiedNode]) -> int:
    total = _BASE_DELETION_SECONDS
    for node in nodes:
        if node.severity == Severity.WILL_DELETE:
            total += _DELETION_SECONDS_PER_ENTITY.get(node.entity_type, 0.0)
    return math.ceil(round(total, 6))


def _summary(requested: int, affected: Sequence[ClassifiedNode]) -> str:
    if not affected:
        return f"Deleting {requested} document(s) affects no other entities."

    counts = {s: 0 for s in Severity.descending()}
    for node in affected:
        counts[node.severity] += 1
    breakdown = ", ".join(f"{count} {_SEVERITY_PHRASES[s]}" for s, count in counts.items() if count)
    noun = "entity" if len(affected) == 1 else "entities"
    return f"Deleting {requested} document(s) affects {len(affected)} other {noun}: {breakdown}."
