"""Syndication feed discovery and parsing (RSS 2.0 and Atom)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import urljoin

from bs4 import BeautifulSoup

_FEED_HINT = re.compile(r"rss|atom|xml", re.IGNORECASE)
_FEED_RELS = {"alternate", "feed"}


@dataclass(frozen=True)
class FeedEntry:
    link: str
    title: str | None
    content: str | None
    published_at: datetime | None

    @property
    def has_content(self) -> bool:
        return bool((self.title or "").strip() or (self.content or "").strip())


def extract_feed_urls(html: str, base: str) -> list[str]:
    """
    Find feed URLs advertised by `<link rel="alternate">` / `<link rel="feed">` tags.

    Relative hrefs are resolved against `base` (the page's final URL).
    Order follows the document; duplicates are dropped.
    """
    if not html:
        return []
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception:
        return []

    urls: list[str] = []
    for link in soup.find_all("link"):
        rels = {r.lower() for r in (link.get("rel") or [])}
        if not rels & _FEED_RELS:
            continue
        href = (link.get("href") or "").strip()
        if not href:
            continue
        if not _FEED_HINT.search(f"{link.get('type') or ''}{href}"):
            continue
        absolute = urljoin(base, href)
        if absolute not in urls:
            urls.append(absolute)
    return urls


def parse_feed_entries(xml: str, *, base: str | None = None) -> list[FeedEntry]:
    """Parse RSS `<item>` and Atom `<entry>` elements in document order."""
    if not xml:
        return []
    try:
        soup = BeautifulSoup(xml, "xml")
    except Exception:
        return []

    entries: list[FeedEntry] = []
    for item in soup.find_all(["item", "entry"]):
        link = _entry_link(item)
        if link and base:
            link = urljoin(base, link)
        entries.append(
            FeedEntry(
                link=link,
                title=_child_text(item, "title"),
                content=_child_text(item, "description", "summary", "content", "encoded"),
                published_at=parse_feed_date(_child_text(item, "pubDate", "published", "updated", "date")),
            )
        )
    return entries


def best_feed_entry(entries: list[FeedEntry]) -> FeedEntry | None:
    """First entry exposing both a link and non-empty content."""
    for entry in entries:
        if entry.link and entry.has_content:
            return entry
    return None


def parse_feed_date(value: str | None) -> datetime | None:
    if not value:
        return None
    value = value.strip()
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        dt = None
    if dt is None:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _entry_link(item) -> str:
    # Atom: <link href="..." rel="alternate"/>; RSS: <link>...</link>
    fallback = ""
    for link in item.find_all("link", recursive=False):
        href = (link.get("href") or "").strip()
        if href:
            rel = (link.get("rel") or "alternate")
            if isinstance(rel, list):
                rel = rel[0] if rel else "alternate"
            if rel == "alternate":
                return href
            fallback = fallback or href
            continue
        text = link.get_text(strip=True)
        if text:
            return text
    if fallback:
        return fallback
    guid = item.find("guid", recursive=False)
    if guid is not None and (guid.get("isPermaLink") or "true").lower() == "true":
        text = guid.get_text(strip=True)
        if text.startswith(("http://", "https://")):
            return text
    return ""


def _child_text(item, *names: str) -> str | None:
    for name in names:
        child = item.find(name, recursive=False)
        if child is None:
            continue
        text = child.get_text(" ", strip=True)
        if text:
            return text
    return None
