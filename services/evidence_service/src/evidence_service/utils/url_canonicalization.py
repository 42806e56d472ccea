"""URL helpers for resolved evidence links."""

from __future__ import annotations

import ipaddress
from urllib.parse import urlparse, urlunparse


def canonicalize_url(url: str, *, preserve_query: bool = True) -> str:
    """
    Canonicalize a URL by:
    - removing fragments (#...)
    - removing whitespace/newlines
    - normalizing scheme/host
    - optionally removing the query string

    Agency permalinks carry their identifier in the query, so it is kept by default.

    Args:
        url: The URL to canonicalize
        preserve_query: If False, drop the query string

    Returns:
        Canonicalized URL string
    """
    # Feed and anchor hrefs are sometimes line-wrapped
    url = "".join(url.split())

    parsed = urlparse(url)

    scheme = parsed.scheme.lower() if parsed.scheme else "https"
    netloc = parsed.netloc.lower()
    query = parsed.query if preserve_query else ""

    return urlunparse((scheme, netloc, parsed.path, parsed.params, query, ""))


def is_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def path_segments(url: str) -> list[str]:
    """Non-empty path segments of a URL."""
    return [p for p in urlparse(url).path.split("/") if p]


def bare_host(url: str) -> str:
    """Lowercased hostname without a leading `www.`."""
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_private_host(url: str) -> bool:
    """
    Check whether a URL points at localhost or a private/loopback address.

    Args:
        url: URL to check

    Returns:
        True for hosts that must not be sent to the public archive
    """
    host = (urlparse(url).hostname or "").lower()
    if not host or host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return False
    return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved
