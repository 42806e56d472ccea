"""Time-boxed HTTP client used by the resolvers."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import httpx

from evidence_service.settings import settings

logger = logging.getLogger(__name__)

_MARKUP_CONTENT_TYPE = re.compile(r"html|xml", re.IGNORECASE)

DEADLINE_EXCEEDED = "deadline exceeded"


@dataclass
class FetchResult:
    """Result of fetching a URL."""

    url: str
    final_url: str
    status_code: int
    content: bytes | None
    content_type: str | None
    fetched_at: datetime
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300 and self.content is not None

    @property
    def text(self) -> str:
        if not self.content:
            return ""
        return self.content.decode("utf-8", errors="replace")

    @property
    def markup(self) -> str:
        """Body text when the response is HTML or XML, otherwise an empty string."""
        if not _MARKUP_CONTENT_TYPE.search(self.content_type or ""):
            return ""
        return self.text


class PoliteHttpClient:
    """
    HTTP client for outlet and archive lookups.

    Features:
    - Whole-request deadline: connect, redirects and body download together
      never exceed `timeout` seconds
    - Body streamed and abandoned as soon as it passes `max_bytes`
    - Optional fixed delay between requests
    - User-Agent identification
    - Limited retries for transient failures, inside the same deadline
    - Never raises for network outcomes; failures come back as FetchResult.error
    """

    def __init__(
        self,
        crawl_delay: float | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        max_bytes: int | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize HTTP client.

        Args:
            crawl_delay: Delay in seconds between requests
            user_agent: User-Agent string to identify the resolver
            timeout: Wall-clock budget in seconds for one `fetch()` call
            max_retries: Maximum number of attempts for transient failures
            max_bytes: Responses larger than this are treated as failures
            transport: Optional httpx transport (tests inject a MockTransport)
            clock: Monotonic clock used for the deadline (tests inject a fake)
        """
        self.crawl_delay = settings.crawl_delay_s if crawl_delay is None else crawl_delay
        self.user_agent = user_agent or settings.user_agent
        self.timeout = settings.request_timeout_s if timeout is None else timeout
        self.max_retries = max(1, settings.http_max_retries if max_retries is None else max_retries)
        self.max_bytes = settings.max_bytes if max_bytes is None else max_bytes
        self.clock = clock
        self.last_request_time: float | None = None

        self.client = httpx.Client(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=transport,
        )

    def _apply_rate_limit(self) -> None:
        """Apply rate limiting by sleeping if needed."""
        if self.last_request_time is not None and self.crawl_delay > 0:
            elapsed = time.time() - self.last_request_time
            if elapsed < self.crawl_delay:
                time.sleep(self.crawl_delay - elapsed)

        self.last_request_time = time.time()

    def fetch(self, url: str) -> FetchResult:
        """
        Fetch a URL, following redirects, within `self.timeout` seconds overall.

        Args:
            url: URL to fetch

        Returns:
            FetchResult; `final_url` is the address after redirects
        """
        self._apply_rate_limit()
        deadline = self.clock() + self.timeout

        last_error: str | None = None
        for attempt in range(self.max_retries):
            remaining = deadline - self.clock()
            if remaining <= 0:
                last_error = DEADLINE_EXCEEDED
                break
            try:
                return self._fetch_once(url, deadline, remaining)
            except httpx.TimeoutException as e:
                last_error = str(e) or "timeout"
            except httpx.RequestError as e:
                last_error = str(e) or type(e).__name__
            except httpx.InvalidURL as e:
                last_error = str(e)
                break
            if attempt < self.max_retries - 1:
                time.sleep(min(2 ** attempt, max(0.0, deadline - self.clock())))

        logger.debug("fetch failed url=%s error=%s", url, last_error)
        return _failure(url, url, 0, last_error or "Unknown error")

    def _fetch_once(self, url: str, deadline: float, remaining: float) -> FetchResult:
        # Each socket operation also gets at most the remaining budget.
        with self.client.stream("GET", url, timeout=httpx.Timeout(remaining)) as response:
            final_url = str(response.url)
            status = response.status_code
            if not 200 <= status < 300:
                return _failure(url, final_url, status, f"HTTP {status}")

            declared = response.headers.get("Content-Length", "")
            if declared.isdigit() and int(declared) > self.max_bytes:
                return _failure(url, final_url, status, self._too_large(int(declared)))

            chunks: list[bytes] = []
            size = 0
            for chunk in response.iter_bytes():
                size += len(chunk)
                if size > self.max_bytes:
                    return _failure(url, final_url, status, self._too_large(size))
                if self.clock() > deadline:
                    logger.info("fetch deadline exceeded url=%s after %d bytes", url, size)
                    return _failure(url, final_url, status, DEADLINE_EXCEEDED)
                chunks.append(chunk)

            return FetchResult(
                url=url,
                final_url=final_url,
                status_code=status,
                content=b"".join(chunks),
                content_type=response.headers.get("Content-Type"),
                fetched_at=datetime.utcnow(),
            )

    def _too_large(self, size: int) -> str:
        return f"Refusing {size} bytes (max_bytes={self.max_bytes})"

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> PoliteHttpClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()


def _failure(url: str, final_url: str, status_code: int, error: str) -> FetchResult:
    return FetchResult(
        url=url,
        final_url=final_url,
        status_code=status_code,
        content=None,
        content_type=None,
        fetched_at=datetime.utcnow(),
        error=error,
    )
