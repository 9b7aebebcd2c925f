"""Impact report returned by a deletion impact analysis."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, field_serializer, field_validator

from impact_engine.models.entities import DocumentRef, ImpactNode, Severity, _WireModel


class ImpactReport(_WireModel):
    """Deterministic, serializable summary of everything a deletion would touch.

    The report is frozen; the engine keeps no reference to it after
    returning.  ``to_wire()`` produces the camelCase JSON body exposed to
    callers and ``from_wire()`` restores an equal report from it.
    """

    requested_ids: tuple[DocumentRef, ...] = Field(..., min_length=1)
    total_affected: int = Field(..., ge=0, description="Distinct affected entities excluding the seeds.")
    nodes_by_type: dict[str, tuple[ImpactNode, ...]] = Field(default_factory=dict)
    generated_at: datetime
    counts_by_type: dict[str, int] = Field(default_factory=dict)
    counts_by_severity: dict[Severity, int] = Field(default_factory=dict)
    missing_ids: tuple[str, ...] = Field(
        default=(),
        description="Requested ids that do not exist in the store.",
    )
    warnings: tuple[str, ...] = ()
    orphaned_entities: int = Field(
        default=0,
        ge=0,
        description="WILL_ORPHAN nodes that no document outside the request still links to.",
    )
    estimated_time_seconds: int = 0
    summary: str = ""

    @field_validator("requested_ids", mode="before")
    @classmethod
    def _coerce_requested_ids(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(DocumentRef(entity_id=v) if isinstance(v, str) else v for v in value)
        return value

    @field_serializer("requested_ids")
    def _serialize_requested_ids(self, value: tuple[DocumentRef, ...]) -> list[str]:
        return [ref.entity_id for ref in value]

    def iter_nodes(self) -> list[ImpactNode]:
        """Return every node in report order."""
        return [node for nodes in self.nodes_by_type.values() for node in nodes]

    def find(self, entity_type: str, entity_id: str) -> ImpactNode | None:
        for node in self.nodes_by_type.get(entity_type, ()):
            if node.entity_id == entity_id:
                return node
        return None

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible wire representation."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ImpactReport:
        return cls.model_validate(data)
