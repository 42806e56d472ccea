from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Resolution:
    """A specific article/document link found for a citation."""

    url: str
    method: str
    title: str | None = None
    published_at: datetime | None = None
