from __future__ import annotations

import logging

from evidence_service.discovery.anchors import (
    ACCEPT_THRESHOLD,
    extract_anchors,
    extract_canonical,
    rank_candidates,
)
from evidence_service.discovery.feeds import best_feed_entry, extract_feed_urls, parse_feed_entries
from evidence_service.fetch.http_client import PoliteHttpClient
from evidence_service.resolution import Resolution

logger = logging.getLogger(__name__)

METHOD_RSS = "rss"
METHOD_HOMEPAGE = "homepage-heuristic"


class OutletDiscoveryResolver:
    """
    Derive a specific article URL from a generic outlet URL.

    Two tiers:
    - feeds advertised by the outlet page; the first usable entry is trusted as-is
    - article-looking anchors on the page itself, accepted only above ACCEPT_THRESHOLD

    Every fetch is time-boxed by the HTTP client and any failure yields None.
    """

    def __init__(self, http: PoliteHttpClient) -> None:
        self.http = http

    def resolve(self, generic_url: str, outlet_hint: str | None = None) -> Resolution | None:
        home = self.http.fetch(generic_url)
        if not home.ok:
            logger.info("outlet home fetch failed outlet=%s url=%s error=%s", outlet_hint, generic_url, home.error)
            return None
        html = home.markup

        found = self._from_feeds(html, base=home.final_url)
        if found is not None:
            return found

        return self._from_homepage(html, base=home.final_url, outlet_hint=outlet_hint)

    def _from_feeds(self, html: str, *, base: str) -> Resolution | None:
        for feed_url in extract_feed_urls(html, base):
            feed = self.http.fetch(feed_url)
            if not feed.ok:
                continue
            entry = best_feed_entry(parse_feed_entries(feed.text, base=feed.final_url))
            if entry is None:
                continue
            return Resolution(
                url=entry.link,
                method=METHOD_RSS,
                title=entry.title,
                published_at=entry.published_at,
            )
        return None

    def _from_homepage(self, html: str, *, base: str, outlet_hint: str | None) -> Resolution | None:
        candidates = rank_candidates(extract_anchors(html, base))
        if not candidates or candidates[0].score < ACCEPT_THRESHOLD:
            logger.info(
                "no homepage candidate above threshold outlet=%s url=%s best=%s",
                outlet_hint,
                base,
                candidates[0].score if candidates else None,
            )
            return None

        best = candidates[0]
        page = self.http.fetch(best.url)
        canonical = extract_canonical(page.markup, page.final_url) if page.ok else None
        return Resolution(
            url=canonical or best.url,
            method=METHOD_HOMEPAGE,
            title=best.text or None,
        )
