"""Evidence link resolution orchestrator.

Pulls a bounded batch of pending citations and, one at a time:
- tries the agency permalink rules on the parent event's provenance
- falls back to outlet discovery on the citation's source URL (unless agency-only)
- persists through the guarded, compare-and-set writer
- tallies the outcome on the run ledger

Processing is strictly sequential and paced; a consecutive-skip circuit breaker
stops the batch when nothing is resolving.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session

from brandlens_core.db.enums import ResolveMode
from brandlens_core.db.models import EventSource
from evidence_service.agency.permalinks import AgencyPermalinkResolver, EventProvenance
from evidence_service.archive.wayback import WaybackSnapshotter
from evidence_service.discovery.outlet import OutletDiscoveryResolver
from evidence_service.persist.citations import CitationStore, PersistOutcome, ResolutionWriter
from evidence_service.runs.ledger import RunLedger, RunTally
from evidence_service.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class ResolverConfig:
    """Pacing and circuit-breaker knobs for one invocation."""

    citation_pause_s: float = field(default_factory=lambda: settings.citation_pause_s)
    success_pause_s: float = field(default_factory=lambda: settings.success_pause_s)
    breaker_threshold: int = field(default_factory=lambda: settings.breaker_threshold)


@dataclass
class BreakerState:
    consecutive_skips: int = 0
    tripped: bool = False

    def record_resolved(self) -> None:
        self.consecutive_skips = 0

    def record_skip(self, *, threshold: int, armed: bool) -> None:
        self.consecutive_skips += 1
        if armed and self.consecutive_skips >= threshold:
            self.tripped = True


@dataclass
class RunSummary:
    run_id: uuid.UUID
    mode: str
    processed: int
    resolved: int
    skipped: int
    failed: int
    duration_ms: int
    circuit_open: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "mode": self.mode,
            "processed": self.processed,
            "resolved": self.resolved,
            "skipped": self.skipped,
            "failed": self.failed,
            "duration_ms": self.duration_ms,
        }


def parse_mode(value: str | ResolveMode) -> ResolveMode:
    if isinstance(value, ResolveMode):
        return value
    try:
        return ResolveMode(value)
    except ValueError:
        allowed = ", ".join(m.value for m in ResolveMode)
        raise ValueError(f"Unknown mode {value!r} (expected one of: {allowed})") from None


class ResolutionOrchestrator:
    """Top-level controller for one resolver invocation."""

    def __init__(
        self,
        session: Session,
        *,
        agency: AgencyPermalinkResolver | None = None,
        discovery: OutletDiscoveryResolver | None = None,
        archiver: WaybackSnapshotter | None = None,
        config: ResolverConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            session: Database session for citations and the run ledger
            agency: Deterministic agency resolver (defaults to the built-in rules)
            discovery: Outlet discovery resolver; None disables discovery entirely
            archiver: Wayback snapshotter; None skips archival
            config: Pacing and breaker configuration
            sleep: Pause function (tests pass a no-op)
        """
        self.session = session
        self.agency = agency or AgencyPermalinkResolver()
        self.discovery = discovery
        self.archiver = archiver
        self.config = config or ResolverConfig()
        self.sleep = sleep
        self.store = CitationStore(session)
        self.ledger = RunLedger(session)

    def run(
        self,
        mode: str | ResolveMode = ResolveMode.agency_first,
        limit: int = 50,
        *,
        event_id: uuid.UUID | None = None,
        source_id: uuid.UUID | None = None,
    ) -> RunSummary:
        mode = parse_mode(mode)
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")

        started = time.perf_counter()
        run = self.ledger.start(
            mode.value,
            params={
                "limit": limit,
                "event_id": str(event_id) if event_id else None,
                "source_id": str(source_id) if source_id else None,
            },
        )
        run_id = run.run_id
        tally = RunTally()
        breaker = BreakerState()

        try:
            batch = self.store.select_pending(limit=limit, event_id=event_id, source_id=source_id)
            writer = ResolutionWriter(self.store, archiver=self.archiver, run_id=run_id)
            logger.info("resolver run started run_id=%s mode=%s batch=%d", run_id, mode.value, len(batch))

            for citation in batch:
                tally.processed += 1
                self._process_one(citation, mode=mode, writer=writer, tally=tally, breaker=breaker)
                if breaker.tripped:
                    logger.warning(
                        "circuit breaker tripped run_id=%s consecutive_skips=%d processed=%d",
                        run_id,
                        breaker.consecutive_skips,
                        tally.processed,
                    )
                    break
        except Exception as exc:
            self.session.rollback()
            logger.exception("resolver run failed run_id=%s", run_id)
            try:
                self.ledger.fail(run, tally, str(exc), notes={"duration_ms": _elapsed_ms(started)})
            except Exception:
                logger.exception("could not finalize failed run run_id=%s", run_id)
            raise

        duration_ms = _elapsed_ms(started)
        notes: dict[str, Any] = {"duration_ms": duration_ms}
        if breaker.tripped:
            notes["circuit_breaker"] = {"consecutive_skips": breaker.consecutive_skips}
        self.ledger.finish(run, tally, notes=notes)

        summary = RunSummary(
            run_id=run_id,
            mode=mode.value,
            processed=tally.processed,
            resolved=tally.resolved,
            skipped=tally.skipped,
            failed=tally.failed,
            duration_ms=duration_ms,
            circuit_open=breaker.tripped,
        )
        logger.info("resolver run finished %s", summary.to_dict())
        return summary

    def _process_one(
        self,
        citation: EventSource,
        *,
        mode: ResolveMode,
        writer: ResolutionWriter,
        tally: RunTally,
        breaker: BreakerState,
    ) -> None:
        armed = mode is not ResolveMode.agency_only
        citation_id = citation.id
        try:
            outcome = self._resolve_and_persist(citation, mode=mode, writer=writer)
        except Exception:
            self.session.rollback()
            tally.failed += 1
            logger.warning("resolver error source_id=%s", citation_id, exc_info=True)
            self.sleep(self.config.citation_pause_s)
            return

        if outcome is PersistOutcome.written:
            tally.resolved += 1
            breaker.record_resolved()
            self.sleep(self.config.success_pause_s)
        else:
            tally.skipped += 1
            breaker.record_skip(threshold=self.config.breaker_threshold, armed=armed)
        self.sleep(self.config.citation_pause_s)

    def _resolve_and_persist(
        self,
        citation: EventSource,
        *,
        mode: ResolveMode,
        writer: ResolutionWriter,
    ) -> PersistOutcome | None:
        found = self.agency.resolve(_provenance_of(citation))
        if found is None and mode is not ResolveMode.agency_only:
            if self.discovery is not None and citation.source_url:
                found = self.discovery.resolve(citation.source_url, citation.source_name)
        if found is None:
            return None
        return writer.persist(citation, found)


def _provenance_of(citation: EventSource) -> EventProvenance | None:
    event = citation.event
    if event is None or not event.raw_data:
        return None
    return EventProvenance(raw_data=event.raw_data, title=event.title, occurred_at=event.occurred_at)


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))
