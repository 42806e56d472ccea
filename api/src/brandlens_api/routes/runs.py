"""Resolver run ledger endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel

from brandlens_api.deps import DbSession
from brandlens_core.db.enums import RunStatus
from evidence_service.runs.ledger import RunLedger

router = APIRouter()


class RunItem(BaseModel):
    """One resolver invocation."""

    run_id: UUID
    mode: str
    status: RunStatus
    started_at: datetime
    finished_at: datetime | None
    processed: int
    resolved: int
    skipped: int
    failed: int
    notes: dict[str, Any] | None

    model_config = {"from_attributes": True}


@router.get("/resolution-runs", response_model=list[RunItem])
def list_runs(db: DbSession, limit: int = Query(default=10, ge=1, le=100)) -> list[RunItem]:
    """Most recent resolver runs, newest first."""
    return [RunItem.model_validate(run) for run in RunLedger(db).recent(limit=limit)]
