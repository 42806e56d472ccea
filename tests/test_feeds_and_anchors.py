from __future__ import annotations

from datetime import datetime, timezone

import pytest

from evidence_service.discovery.anchors import (
    ACCEPT_THRESHOLD,
    Anchor,
    extract_anchors,
    extract_canonical,
    looks_like_article_path,
    rank_candidates,
    score_candidate,
)
from evidence_service.discovery.feeds import (
    best_feed_entry,
    extract_feed_urls,
    parse_feed_date,
    parse_feed_entries,
)

HOME = """
<html><head>
  <link rel="alternate" type="application/rss+xml" href="/feed.xml">
  <link rel="alternate" type="application/rss+xml" href="https://example-news.com/feed.xml">
  <link rel="alternate" hreflang="fr" href="/fr/">
  <link rel="stylesheet" href="/site.css">
  <link rel="feed" href="https://cdn.example-news.com/atom">
</head><body></body></html>
"""

RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel>
  <title>Example News</title>
  <item><title></title><link>https://example-news.com/empty</link></item>
  <item>
    <title>Plant cited for safety violations</title>
    <link>https://example-news.com/2024/03/01/plant-cited</link>
    <description>Inspectors found...</description>
    <pubDate>Fri, 01 Mar 2024 12:00:00 GMT</pubDate>
  </item>
</channel></rss>
"""

ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Outlet</title>
  <entry>
    <title>Recall expanded</title>
    <link rel="alternate" href="/stories/recall-expanded"/>
    <updated>2024-02-10T08:30:00Z</updated>
    <summary>The recall now covers...</summary>
  </entry>
</feed>
"""


def test_extract_feed_urls_resolves_relative_and_dedupes():
    urls = extract_feed_urls(HOME, "https://example-news.com/")
    assert urls == [
        "https://example-news.com/feed.xml",
        "https://cdn.example-news.com/atom",
    ]


def test_extract_feed_urls_empty_page():
    assert extract_feed_urls("", "https://example-news.com/") == []


def test_parse_rss_and_pick_first_entry_with_content():
    entries = parse_feed_entries(RSS, base="https://example-news.com/feed.xml")
    assert len(entries) == 2

    best = best_feed_entry(entries)
    assert best.link == "https://example-news.com/2024/03/01/plant-cited"
    assert best.title == "Plant cited for safety violations"
    assert best.published_at == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_atom_relative_link():
    entries = parse_feed_entries(ATOM, base="https://outlet.example/atom.xml")
    assert entries[0].link == "https://outlet.example/stories/recall-expanded"
    assert entries[0].content == "The recall now covers..."
    assert entries[0].published_at == datetime(2024, 2, 10, 8, 30, tzinfo=timezone.utc)


def test_best_feed_entry_none_when_nothing_usable():
    assert best_feed_entry(parse_feed_entries("<rss><channel></channel></rss>")) is None


@pytest.mark.parametrize("value", [None, "", "not a date"])
def test_parse_feed_date_unparseable(value):
    assert parse_feed_date(value) is None


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://example-news.com/2024/03/01/plant-cited", True),
        ("https://example-news.com/2024/03/roundup", True),
        ("https://example-news.com/news/plant-cited", True),
        ("https://example-news.com/business/plant-cited", True),
        ("https://example-news.com/about", False),
        ("https://example-news.com/news", False),
        ("https://example-news.com/", False),
    ],
)
def test_looks_like_article_path(url, expected):
    assert looks_like_article_path(url) is expected


def test_score_candidate_weights():
    bare = Anchor(url="https://x.example/news/a", text="short")
    dated = Anchor(url="https://x.example/2024/03/a", text="short")
    dated_long = Anchor(url="https://x.example/2024/03/a", text="A rather long descriptive headline")

    assert score_candidate(bare) == pytest.approx(0.3)
    assert score_candidate(dated) == pytest.approx(0.6)
    assert score_candidate(dated_long) == pytest.approx(0.8)
    assert score_candidate(bare) < ACCEPT_THRESHOLD <= score_candidate(dated)


def test_rank_candidates_filters_and_orders():
    html = """
    <a href="/about">About us</a>
    <a href="/news/short">Short</a>
    <a href="/2024/03/01/long">Company fined over river pollution</a>
    <a href="mailto:tips@example.com">Tips</a>
    <a href="#top">Top</a>
    """
    ranked = rank_candidates(extract_anchors(html, "https://x.example/"))
    assert [c.url for c in ranked] == [
        "https://x.example/2024/03/01/long",
        "https://x.example/news/short",
    ]
    assert ranked[0].score == pytest.approx(0.8)


def test_extract_canonical_prefers_link_then_og_url():
    both = """<head><meta property="og:url" content="https://x.example/og">
    <link rel="canonical" href="/canonical"></head>"""
    og_only = '<head><meta property="og:url" content="https://x.example/og"></head>'

    assert extract_canonical(both, "https://x.example/page") == "https://x.example/canonical"
    assert extract_canonical(og_only, "https://x.example/page") == "https://x.example/og"
    assert extract_canonical("<p>none</p>", "https://x.example/page") is None
