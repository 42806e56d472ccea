from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brandlens_core.db.base import Base
from brandlens_core.db.enums import EvidenceStatus, LinkKind, RunStatus


class BrandEvent(Base):
    __tablename__ = "brand_events"

    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    brand_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Agency identifiers (activity_nr, registry_id, case_number, ...) captured at ingestion.
    raw_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    sources: Mapped[list[EventSource]] = relationship(back_populates="event")


class EventSource(Base):
    """A citation attached to a brand event."""

    __tablename__ = "event_sources"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("brand_events.event_id"), nullable=False)
    source_name: Mapped[str] = mapped_column(String(512), nullable=False)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Written once by the resolver; guarded by "canonical_url IS NULL" on update.
    canonical_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    canonical_url_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    archive_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    link_kind: Mapped[LinkKind | None] = mapped_column(Enum(LinkKind, native_enum=False), nullable=True)
    evidence_status: Mapped[EvidenceStatus] = mapped_column(
        Enum(EvidenceStatus, native_enum=False), nullable=False, default=EvidenceStatus.pending
    )
    article_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    article_published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    event: Mapped[BrandEvent] = relationship(back_populates="sources")

    __table_args__ = (
        Index("ix_event_sources_event", "event_id"),
        Index("ix_event_sources_pending", "evidence_status", "link_kind"),
        Index("ix_event_sources_canonical_hash", "canonical_url_hash"),
    )


class EvidenceResolutionRun(Base):
    __tablename__ = "evidence_resolution_runs"

    run_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    mode: Mapped[str] = mapped_column(String(32), nullable=False)
    params: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[RunStatus] = mapped_column(
        Enum(RunStatus, native_enum=False), nullable=False, default=RunStatus.started
    )

    processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("ix_evidence_resolution_runs_started", "started_at"),)


def import_models() -> None:
    # Used by Alembic autogenerate. Keep import side effects explicit.
    _ = (
        BrandEvent,
        EventSource,
        EvidenceResolutionRun,
    )
