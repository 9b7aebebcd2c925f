"""Typed failures raised by the deletion impact engine.

Every failure path of an analysis ends in one of these exceptions.  Callers
distinguish them by class (or by the ``kind`` string when crossing a
serialization boundary) to decide between a client-fault response, a retry,
or a re-run with relaxed bounds.
"""

from __future__ import annotations

from typing import Any


class ImpactAnalysisError(Exception):
    """Base class for all deletion impact analysis failures."""

    kind: str = "error"

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-safe description of the failure."""
        return {"kind": self.kind, "message": str(self)}


class ValidationError(ImpactAnalysisError):
    """Malformed or empty analysis input.

    Attributes
    ----------
    errors:
        Field-level messages shaped like pydantic's error entries:
        ``{"loc": [...], "msg": str, "type": str}``.
    """

    kind = "validation"

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        messages = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in errors)
        super().__init__(f"Invalid analysis request: {messages}")

    @classmethod
    def single(cls, loc: list[str | int], msg: str, error_type: str) -> ValidationError:
        return cls([{"loc": loc, "msg": msg, "type": error_type}])

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["details"] = self.errors
        return payload


class StoreUnavailableError(ImpactAnalysisError):
    """The backing store failed or timed out during traversal.

    Safe to retry the whole analysis; analysis never writes.
    """

    kind = "store_unavailable"

    def __init__(self, entity_type: str, entity_id: str, cause: BaseException | None = None) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Store lookup failed for {entity_type}:{entity_id}{detail}")


class TruncatedError(ImpactAnalysisError):
    """Traversal exceeded the configured depth or node bound.

    Attributes
    ----------
    reason:
        ``"depth"`` or ``"fan_out"``.
    limit:
        The bound that was exceeded.
    """

    kind = "truncated"

    def __init__(self, reason: str, limit: int, entity_type: str, entity_id: str) -> None:
        self.reason = reason
        self.limit = limit
        self.entity_type = entity_type
        self.entity_id = entity_id
        if reason == "depth":
            message = (
                f"Impact analysis exceeded max_depth={limit} at {entity_type}:{entity_id}. "
                f"This may indicate a misconfigured catalog or an unexpectedly deep chain."
            )
        else:
            message = f"Impact analysis exceeded max_nodes={limit} at {entity_type}:{entity_id}."
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["reason"] = self.reason
        payload["limit"] = self.limit
        return payload


class AnalysisCancelledError(ImpactAnalysisError):
    """The caller cancelled the analysis or its deadline passed."""

    kind = "cancelled"

    def __init__(self, message: str = "Impact analysis was cancelled") -> None:
        super().__init__(message)
