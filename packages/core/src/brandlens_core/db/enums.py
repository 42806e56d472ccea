from __future__ import annotations

import enum


class LinkKind(str, enum.Enum):
    homepage = "homepage"
    article = "article"
    database = "database"


class EvidenceStatus(str, enum.Enum):
    pending = "pending"
    resolved = "resolved"


class ResolveMode(str, enum.Enum):
    agency_only = "agency-only"
    agency_first = "agency-first"
    full = "full"


class RunStatus(str, enum.Enum):
    started = "started"
    completed = "completed"
    failed = "failed"
