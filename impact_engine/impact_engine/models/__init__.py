"""Domain models for the deletion impact engine."""

from impact_engine.models.entities import (
    DependencyEdge,
    DocumentRef,
    EntityType,
    ImpactNode,
    RelationKind,
    Severity,
)
from impact_engine.models.report import ImpactReport

__all__ = [
    "DependencyEdge",
    "DocumentRef",
    "EntityType",
    "ImpactNode",
    "ImpactReport",
    "RelationKind",
    "Severity",
]
