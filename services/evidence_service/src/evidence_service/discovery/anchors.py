"""Homepage anchor scraping and article-likeness scoring."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

# Empirical weights; tunable, not known-optimal.
ARTICLE_BASE_SCORE = 0.3
YEAR_SEGMENT_BONUS = 0.3
LONG_TEXT_BONUS = 0.2
LONG_TEXT_MIN_CHARS = 20
ACCEPT_THRESHOLD = 0.5

_ARTICLE_PATH = re.compile(
    r"/(20\d{2}/\d{2}/\d{2}|20\d{2}/\d{2}|news|article|stories|story|business|politics|environment)/"
)
_YEAR_SEGMENT = re.compile(r"/20\d{2}/")


@dataclass(frozen=True)
class Anchor:
    url: str
    text: str


@dataclass(frozen=True)
class ScoredAnchor:
    url: str
    text: str
    score: float


def extract_anchors(html: str, base: str) -> list[Anchor]:
    """All `<a href>` anchors as absolute http(s) URLs with their visible text."""
    if not html:
        return []
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception:
        return []

    anchors: list[Anchor] = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.startswith(("#", "mailto:", "javascript:", "tel:")):
            continue
        absolute, _frag = urldefrag(urljoin(base, href))
        if urlparse(absolute).scheme not in ("http", "https"):
            continue
        anchors.append(Anchor(url=absolute, text=a.get_text(" ", strip=True)))
    return anchors


def looks_like_article_path(url: str) -> bool:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    return bool(_ARTICLE_PATH.search(path))


def score_candidate(anchor: Anchor) -> float:
    """Score an anchor that already passed `looks_like_article_path`."""
    score = ARTICLE_BASE_SCORE
    if _YEAR_SEGMENT.search(urlparse(anchor.url).path):
        score += YEAR_SEGMENT_BONUS
    if len(anchor.text) > LONG_TEXT_MIN_CHARS:
        score += LONG_TEXT_BONUS
    return min(1.0, score)


def rank_candidates(anchors: list[Anchor]) -> list[ScoredAnchor]:
    """Article-looking anchors, best first (stable for equal scores)."""
    scored = [
        ScoredAnchor(url=a.url, text=a.text, score=score_candidate(a))
        for a in anchors
        if looks_like_article_path(a.url)
    ]
    return sorted(scored, key=lambda c: -c.score)


def extract_canonical(html: str, base: str) -> str | None:
    """`<link rel="canonical">` first, then `<meta property="og:url">`."""
    if not html:
        return None
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception:
        return None

    href = None
    for link in soup.find_all("link", href=True):
        rels = {r.lower() for r in (link.get("rel") or [])}
        if "canonical" in rels:
            href = link["href"].strip()
            break
    if not href:
        meta = soup.find("meta", attrs={"property": "og:url"})
        if meta is not None:
            href = (meta.get("content") or "").strip()
    if not href:
        return None
    return urljoin(base, href)
