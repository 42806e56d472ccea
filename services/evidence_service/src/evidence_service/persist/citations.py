"""Citation store: pending selection, guards, and compare-and-set resolution writes."""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session, selectinload

from brandlens_core.db.enums import EvidenceStatus, LinkKind
from brandlens_core.db.models import EventSource
from brandlens_core.hashing import sha256_text
from evidence_service.archive.wayback import WaybackSnapshotter
from evidence_service.resolution import Resolution
from evidence_service.utils.url_canonicalization import bare_host, canonicalize_url, path_segments

logger = logging.getLogger(__name__)

GENERIC_LAST_SEGMENTS = frozenset({"press", "about", "news", "index", "landing"})
AGENCY_APEX_DOMAINS = frozenset({"osha.gov", "epa.gov", "fec.gov"})
_WEB_EXTENSIONS = (".html", ".htm", ".shtml", ".php", ".asp", ".aspx")


class PersistOutcome(str, enum.Enum):
    written = "written"
    generic = "generic"
    duplicate = "duplicate"
    already_resolved = "already_resolved"


def is_likely_generic(url: str) -> bool:
    """
    True when a resolved URL is still a landing page rather than a document.

    - root path
    - last path segment is a known non-article keyword (press, about, ...)
    - agency apex domains with fewer than two path segments
    """
    try:
        segments = path_segments(url)
        host = bare_host(url)
    except ValueError:
        return True
    if not host:
        return True
    if not segments:
        return True

    last = segments[-1].lower()
    for ext in _WEB_EXTENSIONS:
        if last.endswith(ext):
            last = last[: -len(ext)]
            break
    if last in GENERIC_LAST_SEGMENTS:
        return True

    if host in AGENCY_APEX_DOMAINS and len(segments) < 2:
        return True
    return False


class CitationStore:
    """Read/write access to event_sources rows on behalf of the resolver."""

    def __init__(self, session: Session):
        self.session = session

    def select_pending(
        self,
        *,
        limit: int,
        event_id: uuid.UUID | None = None,
        source_id: uuid.UUID | None = None,
    ) -> list[EventSource]:
        """Pending citations whose link is still a homepage (or unset), oldest first, with their event loaded."""
        stmt = (
            select(EventSource)
            .options(selectinload(EventSource.event))
            .where(EventSource.evidence_status == EvidenceStatus.pending)
            .where(or_(EventSource.link_kind == LinkKind.homepage, EventSource.link_kind.is_(None)))
        )
        if event_id is not None:
            stmt = stmt.where(EventSource.event_id == event_id)
        if source_id is not None:
            stmt = stmt.where(EventSource.id == source_id)
        stmt = stmt.order_by(EventSource.created_at, EventSource.id).limit(limit)
        return list(self.session.scalars(stmt))

    def has_duplicate(self, citation: EventSource, canonical_url: str) -> bool:
        """Another citation on the same event already carries this canonical URL."""
        stmt = (
            select(EventSource.id)
            .where(EventSource.event_id == citation.event_id)
            .where(EventSource.canonical_url == canonical_url)
            .where(EventSource.id != citation.id)
            .limit(1)
        )
        return self.session.execute(stmt).first() is not None

    def mark_resolved(
        self,
        citation_id: uuid.UUID,
        resolution: Resolution,
        canonical_url: str,
        *,
        archive_url: str | None,
        notes: dict[str, Any],
    ) -> bool:
        """
        Write the resolution only if canonical_url is still NULL.

        Returns:
            True if this call won the compare-and-set
        """
        stmt = (
            update(EventSource)
            .where(EventSource.id == citation_id)
            .where(EventSource.canonical_url.is_(None))
            .values(
                canonical_url=canonical_url,
                canonical_url_hash=sha256_text(canonical_url),
                archive_url=archive_url,
                article_title=resolution.title,
                article_published_at=resolution.published_at,
                link_kind=LinkKind.article,
                evidence_status=EvidenceStatus.resolved,
                notes=notes,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def set_archive_url(self, citation_id: uuid.UUID, archive_url: str) -> bool:
        stmt = (
            update(EventSource)
            .where(EventSource.id == citation_id)
            .values(archive_url=archive_url)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def missing_archives(self, *, limit: int) -> list[EventSource]:
        """Citations that have a URL but no archived copy yet."""
        stmt = (
            select(EventSource)
            .where(EventSource.archive_url.is_(None))
            .where(or_(EventSource.canonical_url.is_not(None), EventSource.source_url.is_not(None)))
            .limit(limit)
        )
        return list(self.session.scalars(stmt))


class ResolutionWriter:
    """
    Apply the persistence guards, take a best-effort snapshot, then write.

    Guards (each one skips the write):
    - generic result (landing pages, agency roots)
    - another citation of the same event already has this canonical URL
    """

    def __init__(
        self,
        store: CitationStore,
        *,
        archiver: WaybackSnapshotter | None = None,
        run_id: uuid.UUID | None = None,
    ) -> None:
        self.store = store
        self.archiver = archiver
        self.run_id = run_id

    def persist(self, citation: EventSource, resolution: Resolution) -> PersistOutcome:
        canonical_url = canonicalize_url(resolution.url)
        citation_id = citation.id

        if is_likely_generic(canonical_url):
            logger.warning("skip generic result source_id=%s url=%s", citation_id, canonical_url)
            return PersistOutcome.generic

        if self.store.has_duplicate(citation, canonical_url):
            logger.warning("skip duplicate result source_id=%s url=%s", citation_id, canonical_url)
            return PersistOutcome.duplicate

        archive_url = self._try_archive(canonical_url)
        notes = {
            "method": resolution.method,
            "run_id": str(self.run_id) if self.run_id else None,
            "resolved_at": datetime.now(timezone.utc).isoformat(),
            "source_url": citation.source_url,
            "archived": archive_url is not None,
        }
        written = self.store.mark_resolved(
            citation_id,
            resolution,
            canonical_url,
            archive_url=archive_url,
            notes=notes,
        )
        if not written:
            logger.info("citation already resolved source_id=%s", citation_id)
            return PersistOutcome.already_resolved

        logger.info(
            "resolved permalink source_id=%s method=%s url=%s archived=%s",
            citation_id,
            resolution.method,
            canonical_url,
            archive_url is not None,
        )
        return PersistOutcome.written

    def _try_archive(self, url: str) -> str | None:
        if self.archiver is None:
            return None
        try:
            return self.archiver.snapshot(url)
        except Exception:
            # Archival never blocks resolution.
            logger.warning("archive snapshot raised url=%s", url, exc_info=True)
            return None
