"""Read-only relationship catalog consumed by traversal and classification."""

from impact_engine.catalog.relationship_catalog import (
    RelationDescriptor,
    RelationshipCatalog,
    default_catalog,
    default_severity_for,
    load_catalog,
)

__all__ = [
    "RelationDescriptor",
    "RelationshipCatalog",
    "default_catalog",
    "default_severity_for",
    "load_catalog",
]
