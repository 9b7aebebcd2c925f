"""Relationship catalog: which entity types depend on which, and how.

The catalog is pure configuration.  It is built once at startup (from the
bundled defaults or a JSON file) and never mutated afterwards; the
traversal engine and severity classifier consume it generically, so a new
relation kind only needs a new catalog entry.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field

from impact_engine.models.entities import DependencyEdge, EntityType, RelationKind, Severity

logger = logging.getLogger(__name__)


# Severity a dependent receives when its upstream entity is deleted, keyed by
# relation kind.  Kinds missing here default to INFORMATIONAL.
_DEFAULT_KIND_SEVERITY: dict[RelationKind, Severity] = {
    RelationKind.OWNS: Severity.WILL_DELETE,
    RelationKind.DERIVES_FROM: Severity.WILL_LOSE_DATA,
    RelationKind.REFERENCES: Severity.WILL_ORPHAN,
}


def default_severity_for(kind: RelationKind) -> Severity:
    """Return the deletion-time severity implied by *kind*."""
    return _DEFAULT_KIND_SEVERITY.get(kind, Severity.INFORMATIONAL)


class RelationDescriptor(BaseModel):
    """One declared dependency of some entity type.

    Read as: entities of ``dependent_type`` depend on the owning entity via
    ``relation_kind``; when the owning entity is deleted they receive
    ``severity``.
    """

    model_config = ConfigDict(frozen=True)

    dependent_type: str = Field(..., min_length=1)
    relation_kind: RelationKind
    severity: Severity

    @classmethod
    def of(cls, dependent_type: str, kind: RelationKind, severity: Severity | None = None) -> RelationDescriptor:
        return cls(
            dependent_type=dependent_type,
            relation_kind=kind,
            severity=severity if severity is not None else default_severity_for(kind),
        )


class RelationshipCatalog:
    """Immutable mapping of entity type to its declared dependents.

    Parameters
    ----------
    relations:
        Mapping of entity type -> descriptors of the entities that depend
        on it.  Descriptor order is preserved and defines enumeration order
        during traversal.
    """

    def __init__(self, relations: Mapping[str, Iterable[RelationDescriptor]]) -> None:
        frozen: dict[str, tuple[RelationDescriptor, ...]] = {}
        for entity_type, descriptors in relations.items():
            unique: list[RelationDescriptor] = []
            seen: set[tuple[str, RelationKind]] = set()
            for descriptor in descriptors:
                key = (descriptor.dependent_type, descriptor.relation_kind)
                if key in seen:
                    logger.warning(
                        "Duplicate catalog relation %s -[%s]-> %s ignored",
                        entity_type,
                        descriptor.relation_kind.value,
                        descriptor.dependent_type,
                    )
                    continue
                seen.add(key)
                unique.append(descriptor)
            frozen[entity_type] = tuple(unique)
        self._relations: Mapping[str, tuple[RelationDescriptor, ...]] = MappingProxyType(frozen)

    def edges_for(self, entity_type: str) -> tuple[RelationDescriptor, ...]:
        """Return the descriptors declared for *entity_type*.

        Unknown types yield an empty tuple so partial catalogs stay usable.
        """
        return self._relations.get(entity_type, ())

    def descriptor_for(self, edge: DependencyEdge) -> RelationDescriptor | None:
        """Return the descriptor matching *edge*, or ``None`` if undeclared."""
        for descriptor in self.edges_for(edge.from_type):
            if descriptor.dependent_type == edge.to_type and descriptor.relation_kind == edge.relation_kind:
                return descriptor
        return None

    def allows(self, edge: DependencyEdge) -> bool:
        return self.descriptor_for(edge) is not None

    def entity_types(self) -> list[str]:
        """Return every entity type with declared dependents, in catalog order."""
        return list(self._relations)

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            entity_type: [d.model_dump(mode="json") for d in descriptors]
            for entity_type, descriptors in self._relations.items()
        }

    def __len__(self) -> int:
        return sum(len(d) for d in self._relations.values())

    def __repr__(self) -> str:
        return f"RelationshipCatalog(types={len(self._relations)}, relations={len(self)})"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def default_catalog() -> RelationshipCatalog:
    """Catalog matching the bundled document-processing store schema."""
    return RelationshipCatalog(
        {
            EntityType.DOCUMENT: [
                RelationDescriptor.of(EntityType.DOCUMENT_CHUNK, RelationKind.OWNS),
                RelationDescriptor.of(EntityType.EMBEDDING, RelationKind.OWNS),
                RelationDescriptor.of(EntityType.FACT, RelationKind.OWNS),
                RelationDescriptor.of(EntityType.QUALITY_SCORE, RelationKind.DERIVES_FROM),
                RelationDescriptor.of(EntityType.ENTITY, RelationKind.REFERENCES),
                RelationDescriptor.of(EntityType.DOCUMENT, RelationKind.REFERENCES),
                RelationDescriptor.of(EntityType.PROCESSING_JOB, RelationKind.ASSOCIATED_JOB),
            ],
            EntityType.DOCUMENT_CHUNK: [
                RelationDescriptor.of(EntityType.EMBEDDING, RelationKind.DERIVES_FROM),
            ],
            EntityType.EMBEDDING: [
                RelationDescriptor.of(EntityType.QUALITY_SCORE, RelationKind.DERIVES_FROM),
            ],
        }
    )


class _DescriptorEntry(BaseModel):
    dependent_type: str = Field(..., min_length=1)
    relation_kind: RelationKind
    severity: Severity | None = None


class _CatalogFile(BaseModel):
    relations: dict[str, list[_DescriptorEntry]]


def load_catalog(path: Path | str) -> RelationshipCatalog:
    """Load a catalog from a JSON file.

    Expected shape::

        {"relations": {"document": [{"dependent_type": "embedding",
                                     "relation_kind": "OWNS"}]}}

    ``severity`` is optional per entry and defaults from the relation kind.
    Raises ``pydantic.ValidationError`` for a malformed file.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    parsed = _CatalogFile.model_validate(raw)
    catalog = RelationshipCatalog(
        {
            entity_type: [RelationDescriptor.of(d.dependent_type, d.relation_kind, d.severity) for d in entries]
            for entity_type, entries in parsed.relations.items()
        }
    )
    logger.info("Loaded relationship catalog from %s (%d relations)", path, len(catalog))
    return catalog
