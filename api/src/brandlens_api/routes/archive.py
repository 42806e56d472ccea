"""Archival endpoints (single citation and backfill)."""

from uuid import UUID

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from brandlens_api.deps import Archiver, DbSession
from evidence_service.archive.backfill import archive_citation, backfill_archives

router = APIRouter()


class ArchiveRequest(BaseModel):
    source_id: UUID
    source_url: str


class ArchiveResponse(BaseModel):
    success: bool
    archive_url: str | None = None
    error: str | None = None


class BackfillResponse(BaseModel):
    found: int
    processed: int
    archived: int
    dry_run: bool


@router.post("/archive-url", response_model=ArchiveResponse)
def archive_url(body: ArchiveRequest, db: DbSession, archiver: Archiver):
    """Snapshot a citation's URL on the Wayback Machine and record the archive link."""
    try:
        archived = archive_citation(db, archiver, body.source_id, body.source_url)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid URL format"})
    if archived is None:
        return ArchiveResponse(success=False, error="Archival failed")
    return ArchiveResponse(success=True, archive_url=archived)


@router.post("/backfill-archives", response_model=BackfillResponse)
def backfill(
    db: DbSession,
    archiver: Archiver,
    limit: int = Query(default=100, ge=1, le=1000),
    dryrun: bool = False,
) -> BackfillResponse:
    """Archive citations that have no archive link yet."""
    result = backfill_archives(db, archiver, limit=limit, dry_run=dryrun)
    return BackfillResponse(**result.to_dict())
