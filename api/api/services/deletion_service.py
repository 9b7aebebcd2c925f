"""Deletion impact service -- delegates to the core engine analyzer.

Wraps the request's database session in a read-only
:class:`SqlStoreLookup` and runs the stateless
:class:`DeletionImpactAnalyzer` against it.  Nothing is written.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from impact_engine.cancellation import CancellationToken
from impact_engine.catalog import RelationshipCatalog
from impact_engine.config import Settings
from impact_engine.models import ImpactReport
from impact_engine.simulation import DeletionImpactAnalyzer
from impact_engine.state.store import SqlStoreLookup
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class DeletionImpactService:
    """Run deletion impact analyses for one request.

    Parameters
    ----------
    session:
        Async database session used for reads.
    catalog:
        Process-wide relationship catalog.
    settings:
        Engine settings (traversal bounds, default timeout).
    """

    def __init__(self, session: AsyncSession, catalog: RelationshipCatalog, settings: Settings) -> None:
        self._session = session
        self._catalog = catalog
        self._settings = settings

    async def analyze(
        self,
        document_ids: Sequence[str],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> ImpactReport:
        """Return the impact report for deleting *document_ids*."""
        store = SqlStoreLookup(self._session)
        analyzer = DeletionImpactAnalyzer(store, self._catalog, settings=self._settings)
        return await analyzer.analyze_impact(document_ids, cancel_token=cancel_token)
