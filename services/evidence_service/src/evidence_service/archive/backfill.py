"""Archive single citations on demand and backfill missing archive links."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Callable

from sqlalchemy.orm import Session

from evidence_service.archive.wayback import WaybackSnapshotter
from evidence_service.persist.citations import CitationStore
from evidence_service.settings import settings
from evidence_service.utils.url_canonicalization import is_http_url, is_private_host

logger = logging.getLogger(__name__)


@dataclass
class BackfillResult:
    found: int
    processed: int
    archived: int
    dry_run: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def validate_archivable_url(url: str) -> str:
    """Normalize and validate a URL before sending it to the public archive."""
    url = "".join((url or "").split())
    if not is_http_url(url):
        raise ValueError(f"Not an http(s) URL: {url!r}")
    if is_private_host(url):
        raise ValueError(f"Refusing to archive local/private address: {url!r}")
    return url


def archive_citation(
    session: Session,
    archiver: WaybackSnapshotter,
    source_id: uuid.UUID,
    url: str,
) -> str | None:
    """
    Snapshot `url` and record the archived address on the citation.

    Returns:
        The archive URL, or None when the archive produced nothing or no
        citation with `source_id` exists
    """
    url = validate_archivable_url(url)
    logger.info("archiving source_id=%s url=%s", source_id, url)
    archive_url = archiver.snapshot(url)
    if archive_url is None:
        logger.warning("archive produced no snapshot source_id=%s url=%s", source_id, url)
        return None
    if not CitationStore(session).set_archive_url(source_id, archive_url):
        logger.warning("no citation to record archive on source_id=%s", source_id)
        return None
    return archive_url


def backfill_archives(
    session: Session,
    archiver: WaybackSnapshotter,
    *,
    limit: int = 100,
    dry_run: bool = False,
    pause_s: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BackfillResult:
    """
    Archive citations that have a URL but no archive link.

    The canonical URL is preferred over the original source URL. Submissions
    are spaced by `pause_s` seconds to stay polite to the archive.
    """
    pause_s = settings.backfill_pause_s if pause_s is None else pause_s
    store = CitationStore(session)
    pending = [(c.id, c.canonical_url or c.source_url) for c in store.missing_archives(limit=limit)]
    result = BackfillResult(found=len(pending), processed=0, archived=0, dry_run=dry_run)
    if dry_run:
        return result

    for index, (source_id, url) in enumerate(pending):
        try:
            if archive_citation(session, archiver, source_id, url):
                result.archived += 1
        except ValueError as exc:
            logger.info("skip backfill source_id=%s: %s", source_id, exc)
        result.processed += 1
        if index < len(pending) - 1:
            sleep(pause_s)

    logger.info("archive backfill %s", result.to_dict())
    return result
