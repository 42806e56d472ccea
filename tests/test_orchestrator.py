from __future__ import annotations

import pytest

from brandlens_core.db.enums import EvidenceStatus, LinkKind, ResolveMode, RunStatus
from brandlens_core.db.models import EventSource, EvidenceResolutionRun
from evidence_service.discovery.outlet import OutletDiscoveryResolver
from evidence_service.fetch.http_client import PoliteHttpClient
from evidence_service.orchestrator import BreakerState, ResolutionOrchestrator, ResolverConfig, parse_mode
from evidence_service.resolution import Resolution

OSHA_URL = "https://www.osha.gov/ords/imis/establishment.inspection_detail?id=123456"
NO_PAUSE = ResolverConfig(citation_pause_s=0, success_pause_s=0, breaker_threshold=25)


class StubDiscovery:
    def __init__(self, answers: dict[str, Resolution | Exception] | None = None) -> None:
        self.answers = answers or {}
        self.calls: list[str] = []

    def resolve(self, generic_url: str, outlet_hint: str | None = None) -> Resolution | None:
        self.calls.append(generic_url)
        answer = self.answers.get(generic_url)
        if isinstance(answer, Exception):
            raise answer
        return answer


class ForbiddenDiscovery:
    def resolve(self, generic_url: str, outlet_hint: str | None = None) -> Resolution | None:
        raise AssertionError(f"discovery must not run, got {generic_url}")


def _orchestrator(session, *, discovery=None, archiver=None, config=NO_PAUSE, pauses=None):
    return ResolutionOrchestrator(
        session,
        discovery=discovery,
        archiver=archiver,
        config=config,
        sleep=(pauses.append if pauses is not None else (lambda s: None)),
    )


def _row(session, citation_id) -> EventSource:
    session.expire_all()
    return session.get(EventSource, citation_id)


def test_osha_citation_resolved_and_recorded(session, make_event, make_citation, archiver):
    event = make_event({"activity_nr": "123456"})
    citation = make_citation(event, source_url="https://www.osha.gov", source_name="OSHA")

    summary = _orchestrator(session, discovery=StubDiscovery(), archiver=archiver).run("agency-first", 10)

    assert summary.to_dict() == {
        "run_id": str(summary.run_id),
        "mode": "agency-first",
        "processed": 1,
        "resolved": 1,
        "skipped": 0,
        "failed": 0,
        "duration_ms": summary.duration_ms,
    }
    row = _row(session, citation.id)
    assert row.canonical_url == OSHA_URL
    assert row.link_kind is LinkKind.article
    assert row.evidence_status is EvidenceStatus.resolved
    assert row.notes["method"] == "agency:osha_inspection"
    assert row.notes["run_id"] == str(summary.run_id)

    run = session.get(EvidenceResolutionRun, summary.run_id)
    assert run.status is RunStatus.completed
    assert (run.processed, run.resolved, run.skipped, run.failed) == (1, 1, 0, 0)
    assert run.finished_at is not None
    assert run.params["limit"] == 10


@pytest.mark.parametrize("mode", [ResolveMode.agency_first, ResolveMode.full])
def test_agency_result_short_circuits_discovery(session, make_event, make_citation, mode):
    citation = make_citation(make_event({"registry_id": "110000123"}))
    discovery = StubDiscovery({citation.source_url: Resolution(url="https://example-news.com/2024/03/01/x", method="rss")})

    summary = _orchestrator(session, discovery=discovery).run(mode, 10)

    assert summary.resolved == 1
    assert discovery.calls == []
    assert _row(session, citation.id).notes["method"] == "agency:epa_facility"


def test_discovery_fallback(session, make_event, make_citation):
    citation = make_citation(make_event({"unrelated": 1}), source_url="https://example-news.com")
    article = Resolution(url="https://example-news.com/2024/03/01/plant-cited", method="rss", title="Plant cited")

    summary = _orchestrator(session, discovery=StubDiscovery({"https://example-news.com": article})).run("full", 10)

    assert summary.resolved == 1
    row = _row(session, citation.id)
    assert row.canonical_url == article.url
    assert row.notes["method"] == "rss"


def test_outlet_feed_resolves_and_persists(session, make_event, make_citation, web, archiver):
    web.add(
        "https://example-news.com/",
        '<html><head><link rel="alternate" type="application/rss+xml" href="/feed.xml"></head></html>',
    )
    web.add(
        "https://example-news.com/feed.xml",
        """<?xml version="1.0"?><rss version="2.0"><channel><item>
        <title>Plant cited for safety violations</title>
        <link>https://example-news.com/2024/03/01/plant-cited</link>
        <description>Inspectors found...</description>
        <pubDate>Fri, 01 Mar 2024 12:00:00 GMT</pubDate>
        </item></channel></rss>""",
        content_type="application/rss+xml",
    )
    citation = make_citation(make_event(), source_url="https://example-news.com", source_name="Example News")

    with PoliteHttpClient(crawl_delay=0, max_retries=1, transport=web.transport()) as http:
        discovery = OutletDiscoveryResolver(http)
        summary = _orchestrator(session, discovery=discovery, archiver=archiver).run("full", 10)

    assert (summary.processed, summary.resolved, summary.skipped, summary.failed) == (1, 1, 0, 0)
    row = _row(session, citation.id)
    assert row.canonical_url == "https://example-news.com/2024/03/01/plant-cited"
    assert row.link_kind is LinkKind.article
    assert row.evidence_status is EvidenceStatus.resolved
    assert row.article_title == "Plant cited for safety violations"
    assert row.notes["method"] == "rss"
    assert row.archive_url == archiver.result


def test_agency_only_never_calls_discovery(session, make_event, make_citation):
    event = make_event()
    for _ in range(30):
        make_citation(event)

    summary = _orchestrator(session, discovery=ForbiddenDiscovery()).run("agency-only", 50)

    # The breaker is only armed for modes that run discovery.
    assert (summary.processed, summary.resolved, summary.skipped) == (30, 0, 30)
    assert summary.circuit_open is False


def test_circuit_breaker_stops_batch(session, make_event, make_citation):
    event = make_event()
    for i in range(30):
        make_citation(event, source_url=f"https://outlet{i}.example/")

    discovery = StubDiscovery()
    summary = _orchestrator(session, discovery=discovery).run("full", 50)

    assert summary.processed == 25
    assert summary.skipped == 25
    assert summary.circuit_open is True
    assert len(discovery.calls) == 25
    run = session.get(EvidenceResolutionRun, summary.run_id)
    assert run.status is RunStatus.completed
    assert run.notes["circuit_breaker"]["consecutive_skips"] == 25


def test_resolution_resets_breaker(session, make_event, make_citation):
    event = make_event()
    urls = [f"https://outlet{i}.example/" for i in range(6)]
    for url in urls:
        make_citation(event, source_url=url)
    discovery = StubDiscovery({urls[2]: Resolution(url="https://outlet2.example/news/found", method="rss")})
    config = ResolverConfig(citation_pause_s=0, success_pause_s=0, breaker_threshold=3)

    summary = _orchestrator(session, discovery=discovery, config=config).run("full", 50)

    # Skips 0,1 then resolve 2 resets the count; skips 3,4,5 trip it on the last one.
    assert (summary.processed, summary.resolved, summary.skipped) == (6, 1, 5)
    assert summary.circuit_open is True


def test_per_citation_error_counted_as_failed(session, make_event, make_citation):
    event = make_event()
    bad = make_citation(event, source_url="https://broken.example/")
    good = make_citation(event, source_url="https://fine.example/")
    discovery = StubDiscovery(
        {
            "https://broken.example/": RuntimeError("parser exploded"),
            "https://fine.example/": Resolution(url="https://fine.example/2024/01/02/story", method="rss"),
        }
    )

    summary = _orchestrator(session, discovery=discovery).run("full", 10)

    assert (summary.processed, summary.resolved, summary.skipped, summary.failed) == (2, 1, 0, 1)
    assert _row(session, bad.id).evidence_status is EvidenceStatus.pending
    assert _row(session, good.id).evidence_status is EvidenceStatus.resolved


def test_duplicate_in_same_batch_is_skipped(session, make_event, make_citation):
    event = make_event({"activity_nr": "123456"})
    make_citation(event, source_name="OSHA")
    make_citation(event, source_name="OSHA mirror")

    summary = _orchestrator(session).run("agency-only", 10)

    assert (summary.resolved, summary.skipped) == (1, 1)


def test_batch_failure_marks_run_failed(session, make_event, make_citation, monkeypatch):
    make_citation(make_event())
    orchestrator = _orchestrator(session)

    def boom(**kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(orchestrator.store, "select_pending", boom)

    with pytest.raises(RuntimeError, match="database went away"):
        orchestrator.run("full", 10)

    run = session.query(EvidenceResolutionRun).one()
    assert run.status is RunStatus.failed
    assert run.finished_at is not None
    assert run.notes["error"] == "database went away"


def test_pacing(session, make_event, make_citation):
    event = make_event({"activity_nr": "1"})
    make_citation(event)
    make_citation(make_event(), source_url="https://nothing.example/")
    pauses: list[float] = []
    config = ResolverConfig(citation_pause_s=0.1, success_pause_s=0.3, breaker_threshold=25)

    _orchestrator(session, discovery=StubDiscovery(), config=config, pauses=pauses).run("full", 10)

    assert pauses == [0.3, 0.1, 0.1]


@pytest.mark.parametrize("mode", ["bogus", ""])
def test_unknown_mode_rejected(mode):
    with pytest.raises(ValueError):
        parse_mode(mode)


def test_non_positive_limit_rejected(session):
    with pytest.raises(ValueError):
        _orchestrator(session).run("full", 0)
    assert session.query(EvidenceResolutionRun).count() == 0


def test_breaker_state_unarmed_never_trips():
    breaker = BreakerState()
    for _ in range(100):
        breaker.record_skip(threshold=25, armed=False)
    assert breaker.tripped is False
    assert breaker.consecutive_skips == 100
