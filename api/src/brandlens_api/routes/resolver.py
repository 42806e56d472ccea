"""Evidence link resolution endpoint."""

import logging
from uuid import UUID

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from brandlens_api.deps import Archiver, DbSession, Discovery
from brandlens_core.db.enums import ResolveMode
from evidence_service.orchestrator import ResolutionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


class ResolveResponse(BaseModel):
    """Summary of one resolver run."""

    run_id: UUID
    mode: ResolveMode
    processed: int
    resolved: int
    skipped: int
    failed: int
    duration_ms: int


@router.post(
    "/resolve-evidence-links",
    response_model=ResolveResponse,
    responses={500: {"description": "Run failed; body is {\"error\": ...}"}},
)
def resolve_evidence_links(
    db: DbSession,
    discovery: Discovery,
    archiver: Archiver,
    mode: ResolveMode = Query(default=ResolveMode.agency_first),
    limit: int = Query(default=50, ge=1, le=1000),
    event_id: UUID | None = None,
    source_id: UUID | None = None,
):
    """Resolve a batch of pending generic citations."""
    orchestrator = ResolutionOrchestrator(db, discovery=discovery, archiver=archiver)
    try:
        summary = orchestrator.run(mode, limit, event_id=event_id, source_id=source_id)
    except Exception as e:
        logger.error("resolve-evidence-links failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e) or "Internal error"})
    return summary.to_dict()
