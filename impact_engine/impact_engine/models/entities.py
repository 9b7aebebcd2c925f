"""Core value types for deletion impact analysis."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EntityType:
    """Entity type tags used by the bundled catalog and state store.

    The engine itself treats entity types as opaque strings; a catalog may
    declare any others.
    """

    DOCUMENT = "document"
    DOCUMENT_CHUNK = "document_chunk"
    EMBEDDING = "embedding"
    FACT = "fact"
    ENTITY = "entity"
    QUALITY_SCORE = "quality_score"
    PROCESSING_JOB = "processing_job"


class RelationKind(str, Enum):
    """How a dependent entity relates to the entity it depends on."""

    OWNS = "OWNS"
    DERIVES_FROM = "DERIVES_FROM"
    REFERENCES = "REFERENCES"
    ASSOCIATED_JOB = "ASSOCIATED_JOB"


_SEVERITY_RANK: dict[str, int] = {
    "INFORMATIONAL": 0,
    "WILL_LOSE_DATA": 1,
    "WILL_ORPHAN": 2,
    "WILL_DELETE": 3,
}


class Severity(str, Enum):
    """How an entity is affected by a prospective deletion.

    Ordered: WILL_DELETE > WILL_ORPHAN > WILL_LOSE_DATA > INFORMATIONAL.
    """

    WILL_DELETE = "WILL_DELETE"
    WILL_ORPHAN = "WILL_ORPHAN"
    WILL_LOSE_DATA = "WILL_LOSE_DATA"
    INFORMATIONAL = "INFORMATIONAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    @classmethod
    def max_of(cls, *severities: Severity) -> Severity:
        """Return the highest of *severities* (INFORMATIONAL when empty)."""
        return max(severities, key=lambda s: s.rank, default=cls.INFORMATIONAL)

    @classmethod
    def descending(cls) -> list[Severity]:
        return sorted(cls, key=lambda s: s.rank, reverse=True)


class _WireModel(BaseModel):
    """Frozen model serialized with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DocumentRef(_WireModel):
    """A document requested for deletion analysis."""

    entity_id: str = Field(..., min_length=1, description="Opaque document identifier.")
    entity_type: Literal["document"] = EntityType.DOCUMENT

    @property
    def key(self) -> tuple[str, str]:
        return (self.entity_type, self.entity_id)


class DependencyEdge(_WireModel):
    """``to`` depends on ``from`` via ``relation_kind``."""

    from_type: str
    from_id: str
    to_type: str
    to_id: str
    relation_kind: RelationKind

    @property
    def source_key(self) -> tuple[str, str]:
        return (self.from_type, self.from_id)

    @property
    def target_key(self) -> tuple[str, str]:
        return (self.to_type, self.to_id)

    def label(self) -> str:
        """Stable single-hop description used in relation paths."""
        return f"{self.from_type}:{self.from_id} -[{self.relation_kind.value}]-> {self.to_type}:{self.to_id}"


class ImpactNode(_WireModel):
    """One affected entity in an impact report."""

    entity_type: str
    entity_id: str
    severity: Severity
    relation_path: tuple[str, ...] = Field(
        default=(),
        description="Edge labels from the nearest seed; empty for seeds.",
    )
