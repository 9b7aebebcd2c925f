"""Deletion router -- impact analysis ahead of document deletion.

The analysis is a pure query: it reports what deleting the given
documents would delete, orphan or degrade so that an operator or workflow
can approve the deletion.  Executing the deletion is not handled here.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import CatalogDep, EngineSettingsDep, SessionDep
from api.services.deletion_service import DeletionImpactService

router = APIRouter(prefix="/documents/deletion", tags=["deletion"])


class AnalyzeDeletionRequest(BaseModel):
    """Request body for deletion impact analysis."""

    model_config = ConfigDict(populate_by_name=True)

    document_ids: list[str] = Field(
        ...,
        alias="documentIds",
        min_length=1,
        description="Documents to analyse for deletion.",
    )


@router.post("/analyze")
async def analyze_deletion_impact(
    body: AnalyzeDeletionRequest,
    session: SessionDep,
    catalog: CatalogDep,
    engine_settings: EngineSettingsDep,
) -> dict[str, Any]:
    """Compute the impact of deleting the given documents.

    Returns ``{"impact": <report>}`` where the report lists every affected
    entity grouped by type, with its severity and the relation path that
    reached it.
    """
    service = DeletionImpactService(session, catalog, engine_settings)
    report = await service.analyze(body.document_ids)
    return {"impact": report.to_wire()}
