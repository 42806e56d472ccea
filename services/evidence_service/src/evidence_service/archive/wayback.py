"""Best-effort Wayback Machine snapshots for resolved links."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable
from urllib.parse import quote, urljoin

import httpx

from evidence_service.settings import settings

logger = logging.getLogger(__name__)

WAYBACK_ORIGIN = "https://web.archive.org"
SAVE_ENDPOINT = f"{WAYBACK_ORIGIN}/save/"
AVAILABILITY_ENDPOINT = "https://archive.org/wayback/available"
MAX_AVAILABILITY_BYTES = 1_000_000


class WaybackSnapshotter:
    """
    Submit URLs to the Wayback Machine "save page now" endpoint.

    `snapshot()` returns the archived copy's address or None. It never raises
    for network, HTTP or payload problems, and the save request plus the
    availability fallback share one `timeout_s` wall-clock budget.
    """

    def __init__(
        self,
        *,
        timeout_s: float | None = None,
        user_agent: str | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout_s = settings.archive_timeout_s if timeout_s is None else timeout_s
        self._clock = clock
        self._client = httpx.Client(
            timeout=httpx.Timeout(self.timeout_s),
            headers={"User-Agent": user_agent or settings.user_agent},
            follow_redirects=False,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WaybackSnapshotter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def snapshot(self, url: str) -> str | None:
        deadline = self._clock() + self.timeout_s

        # Only the headers of the save response matter; its body is never read.
        saved = self._get(SAVE_ENDPOINT + quote(url, safe=""), deadline, read_body=False)
        if saved is None:
            return None
        archived = _archived_from_save_response(saved[0])
        if archived:
            return archived
        return self._closest_snapshot(url, deadline)

    def _closest_snapshot(self, url: str, deadline: float) -> str | None:
        fetched = self._get(AVAILABILITY_ENDPOINT, deadline, params={"url": url})
        if fetched is None:
            return None
        resp, body = fetched
        if resp.status_code != 200:
            return None
        try:
            payload = json.loads(body)
        except ValueError:
            return None
        return _closest_url(payload)

    def _get(
        self,
        url: str,
        deadline: float,
        *,
        params: dict[str, str] | None = None,
        read_body: bool = True,
    ) -> tuple[httpx.Response, bytes] | None:
        remaining = deadline - self._clock()
        if remaining <= 0:
            logger.warning("wayback deadline exceeded before request url=%s", url)
            return None
        try:
            with self._client.stream("GET", url, params=params, timeout=httpx.Timeout(remaining)) as resp:
                if not read_body:
                    return resp, b""
                chunks: list[bytes] = []
                size = 0
                for chunk in resp.iter_bytes():
                    size += len(chunk)
                    if size > MAX_AVAILABILITY_BYTES or self._clock() > deadline:
                        logger.warning("wayback response abandoned url=%s after %d bytes", url, size)
                        return None
                    chunks.append(chunk)
                return resp, b"".join(chunks)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("wayback request failed url=%s error=%s", url, exc)
            return None


def _archived_from_save_response(resp: httpx.Response) -> str | None:
    location = resp.headers.get("Content-Location")
    if location and "/web/" in location:
        return urljoin(WAYBACK_ORIGIN, location)
    if resp.is_redirect:
        redirect = resp.headers.get("Location") or ""
        if "/web/" in redirect:
            return urljoin(WAYBACK_ORIGIN, redirect)
    return None


def _closest_url(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    snapshots = payload.get("archived_snapshots")
    if not isinstance(snapshots, dict):
        return None
    closest = snapshots.get("closest")
    if not isinstance(closest, dict) or closest.get("available") is False:
        return None
    archived = closest.get("url")
    return archived if isinstance(archived, str) and archived else None
