"""Audit record of each resolver invocation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from brandlens_core.db.enums import RunStatus
from brandlens_core.db.models import EvidenceResolutionRun


class RunAlreadyFinalized(RuntimeError):
    pass


@dataclass
class RunTally:
    processed: int = 0
    resolved: int = 0
    skipped: int = 0
    failed: int = 0


class RunLedger:
    """
    Owns the lifecycle of EvidenceResolutionRun rows.

    A run is inserted (and committed) when the invocation starts and finalized
    exactly once, as completed or failed.
    """

    def __init__(self, session: Session):
        self.session = session

    def start(self, mode: str, params: dict[str, Any] | None = None) -> EvidenceResolutionRun:
        run = EvidenceResolutionRun(
            mode=mode,
            params=params or {},
            started_at=datetime.utcnow(),
            status=RunStatus.started,
        )
        self.session.add(run)
        self.session.commit()
        return run

    def finish(
        self,
        run: EvidenceResolutionRun,
        tally: RunTally,
        notes: dict[str, Any] | None = None,
    ) -> EvidenceResolutionRun:
        return self._finalize(run, tally, status=RunStatus.completed, notes=notes)

    def fail(
        self,
        run: EvidenceResolutionRun,
        tally: RunTally,
        error: str,
        notes: dict[str, Any] | None = None,
    ) -> EvidenceResolutionRun:
        return self._finalize(run, tally, status=RunStatus.failed, notes={**(notes or {}), "error": error})

    def recent(self, *, limit: int = 10) -> Sequence[EvidenceResolutionRun]:
        stmt = select(EvidenceResolutionRun).order_by(EvidenceResolutionRun.started_at.desc()).limit(limit)
        return self.session.scalars(stmt).all()

    def _finalize(
        self,
        run: EvidenceResolutionRun,
        tally: RunTally,
        *,
        status: RunStatus,
        notes: dict[str, Any] | None,
    ) -> EvidenceResolutionRun:
        if run.finished_at is not None:
            raise RunAlreadyFinalized(f"run {run.run_id} already finalized as {run.status.value}")
        run.processed = tally.processed
        run.resolved = tally.resolved
        run.skipped = tally.skipped
        run.failed = tally.failed
        run.status = status
        run.notes = notes or None
        run.finished_at = datetime.utcnow()
        self.session.commit()
        return run
