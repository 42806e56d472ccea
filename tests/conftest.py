from __future__ import annotations

import os

# Point every settings object at SQLite before any engine is created at import time.
os.environ.setdefault("BRANDLENS_DATABASE_URL", "sqlite://")
os.environ.setdefault("API_DATABASE_URL", "sqlite://")

from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from brandlens_core.db.base import Base
from brandlens_core.db.enums import EvidenceStatus, LinkKind
from brandlens_core.db.models import BrandEvent, EventSource, import_models

import_models()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def session(session_factory) -> Session:
    with session_factory() as s:
        yield s


@pytest.fixture
def make_event(session) -> Callable[..., BrandEvent]:
    def _make(
        raw_data: dict | None = None,
        *,
        title: str | None = "OSHA inspection at plant",
        occurred_at: datetime | None = datetime(2024, 3, 1, tzinfo=timezone.utc),
        category: str = "labor",
    ) -> BrandEvent:
        event = BrandEvent(raw_data=raw_data, title=title, occurred_at=occurred_at, category=category)
        session.add(event)
        session.commit()
        return event

    return _make


@pytest.fixture
def make_citation(session) -> Callable[..., EventSource]:
    def _make(
        event: BrandEvent,
        *,
        source_url: str | None = "https://example-news.com",
        source_name: str = "Example News",
        link_kind: LinkKind | None = LinkKind.homepage,
        canonical_url: str | None = None,
        evidence_status: EvidenceStatus = EvidenceStatus.pending,
    ) -> EventSource:
        citation = EventSource(
            event_id=event.event_id,
            source_name=source_name,
            source_url=source_url,
            link_kind=link_kind,
            canonical_url=canonical_url,
            evidence_status=evidence_status,
        )
        session.add(citation)
        session.commit()
        return citation

    return _make


def _route_key(url: httpx.URL) -> tuple[str, str, str]:
    return (url.host, url.path or "/", url.query.decode())


class FakeWeb:
    """Route table for httpx.MockTransport keyed by host, path and query."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requested: list[str] = []

    def add(self, url: str, body: str = "", *, status: int = 200, content_type: str = "text/html") -> None:
        def _respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, headers={"Content-Type": content_type}, text=body, request=request)

        self.routes[_route_key(httpx.URL(url))] = _respond

    def add_handler(self, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[_route_key(httpx.URL(url))] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requested.append(str(request.url))
        responder = self.routes.get(_route_key(request.url))
        if responder is None:
            return httpx.Response(404, text="not found", request=request)
        return responder(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb()


class NullArchiver:
    def __init__(self, result: str | None = None) -> None:
        self.result = result
        self.calls: list[str] = []

    def snapshot(self, url: str) -> str | None:
        self.calls.append(url)
        return self.result


@pytest.fixture
def archiver() -> NullArchiver:
    return NullArchiver("https://web.archive.org/web/20240301000000/https://example.org/")
