"""Health-check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api import __version__
from api.dependencies import CatalogDep, get_db_session

logger = logging.getLogger(__name__)

HealthSessionDep = Annotated[AsyncSession, Depends(get_db_session)]

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(session: HealthSessionDep, catalog: CatalogDep) -> dict[str, Any]:
    """Return service health.

    Always HTTP 200 so load-balancers see the service as alive; ``db``
    reports whether the document store is reachable.
    """
    result: dict[str, Any] = {
        "status": "healthy",
        "version": __version__,
        "db": "ok",
        "catalog_relations": len(catalog),
    }

    try:
        await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("DB health check failed: %s", exc)
        result["db"] = "degraded"

    return result
