"""Deletion impact analysis for documents.

Given document identifiers, computes everything that deleting them would
touch **without** deleting anything:

1. **Traversal** -- breadth-first closure over the dependency edges the
   relationship catalog declares.
2. **Classification** -- each affected entity gets a severity tier.
3. **Report** -- a deterministic, serializable :class:`ImpactReport`.

All analysis is read-only.  For a fixed store state and clock the same
request always produces an identical report.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from impact_engine.cancellation import CancellationToken
from impact_engine.catalog.relationship_catalog import RelationshipCatalog, default_catalog, load_catalog
from impact_engine.config import Settings
from impact_engine.errors import AnalysisCancelledError, ValidationError
from impact_engine.graph.traversal import TraversalEngine, validate_seeds
from impact_engine.models.entities import DocumentRef, Severity
from impact_engine.models.report import ImpactReport
from impact_engine.simulation.classifier import classify
from impact_engine.simulation.report_builder import build
from impact_engine.state.store import StoreLookup

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_document_ids(document_ids: Any) -> list[DocumentRef]:
    """Validate raw identifiers and wrap them as :class:`DocumentRef`.

    Collects every problem before raising so callers get all field-level
    messages at once.
    """
    if isinstance(document_ids, (str, bytes)) or not isinstance(document_ids, Sequence):
        raise ValidationError.single(["documentIds"], "Input should be a valid list", "list_type")
    if len(document_ids) == 0:
        raise ValidationError.single(["documentIds"], "At least one document ID is required", "too_short")

    errors: list[dict[str, Any]] = []
    for index, value in enumerate(document_ids):
        if not isinstance(value, str):
            errors.append({"loc": ["documentIds", index], "msg": "Input should be a valid string", "type": "string_type"})
        elif not value.strip():
            errors.append(
                {
                    "loc": ["documentIds", index],
                    "msg": "Document ID must be a non-empty string",
                    "type": "string_too_short",
                }
            )
    if errors:
        raise ValidationError(errors)

    refs = [DocumentRef(entity_id=value) for value in document_ids]
    validate_seeds(refs)
    return refs


class DeletionImpactAnalyzer:
    """Analyse what deleting a set of documents would affect.

    Stateless across calls: the only shared state is the read-only catalog.

    Parameters
    ----------
    store:
        Read-only store lookup.
    catalog:
        Relationship catalog; the bundled default when omitted.
    settings:
        Engine settings supplying traversal bounds and the default timeout.
    clock:
        Returns the report timestamp; injectable for reproducible reports.
    """

    def __init__(
        self,
        store: StoreLookup,
        catalog: RelationshipCatalog | None = None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._catalog = catalog or default_catalog()
        self._clock = clock or _utcnow
        self._traversal = TraversalEngine(
            store,
            self._catalog,
            max_depth=self._settings.max_depth,
            max_nodes=self._settings.max_nodes,
            lookup_concurrency=self._settings.lookup_concurrency,
        )

    @classmethod
    def from_settings(cls, store: StoreLookup, settings: Settings, **kwargs: Any) -> DeletionImpactAnalyzer:
        """Build an analyzer whose catalog comes from ``settings.catalog_path``."""
        catalog = load_catalog(settings.catalog_path) if settings.catalog_path else default_catalog()
        return cls(store, catalog, settings=settings, **kwargs)

    @property
    def catalog(self) -> RelationshipCatalog:
        return self._catalog

    async def analyze_impact(
        self,
        document_ids: Sequence[str],
        *,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> ImpactReport:
        """Compute the impact report for deleting *document_ids*.

        Input is validated before any store access.  The whole analysis is
        bounded by *timeout* seconds (``settings.analysis_timeout_seconds``
        by default) whether or not a *cancel_token* is supplied; a supplied
        token can still cancel earlier, or carry a shorter deadline.

        Raises
        ------
        ValidationError
            Empty input, a non-string or blank ID, or duplicate IDs.
        StoreUnavailableError, TruncatedError, AnalysisCancelledError
            Propagated from traversal.
        """
        seeds = parse_document_ids(document_ids)
        limit = timeout if timeout is not None else self._settings.analysis_timeout_seconds
        token = cancel_token or CancellationToken(limit)

        try:
            async with asyncio.timeout(limit):
                graph = await self._traversal.traverse(seeds, cancel_token=token)
                classified = classify(graph, self._catalog)
                candidates = [
                    (node.entity_type, node.entity_id)
                    for node in classified.nodes
                    if node.severity == Severity.WILL_ORPHAN
                ]
                shared = await self._traversal.still_referenced(candidates, seeds, cancel_token=token)
        except TimeoutError as exc:
            raise AnalysisCancelledError(f"Impact analysis exceeded its {limit:g}s deadline") from exc
        report = build(classified, seeds, generated_at=self._clock(), still_referenced=shared)

        logger.info(
            "Deletion impact for %d document(s): %d affected, %d warning(s)",
            len(seeds),
            report.total_affected,
            len(report.warnings),
        )
        return report
