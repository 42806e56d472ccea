"""Add brand event, event source and evidence resolution run tables.

Revision ID: 0001_evidence_tables
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_evidence_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "brand_events",
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("brand_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=False, server_default="general"),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("event_id"),
    )

    op.create_table(
        "event_sources",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_name", sa.String(length=512), nullable=False),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("canonical_url", sa.Text(), nullable=True),
        sa.Column("canonical_url_hash", sa.String(length=64), nullable=True),
        sa.Column("archive_url", sa.Text(), nullable=True),
        sa.Column("link_kind", sa.String(length=8), nullable=True),
        sa.Column("evidence_status", sa.String(length=8), nullable=False, server_default="pending"),
        sa.Column("article_title", sa.Text(), nullable=True),
        sa.Column("article_published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["event_id"], ["brand_events.event_id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_event_sources_event", "event_sources", ["event_id"])
    op.create_index("ix_event_sources_pending", "event_sources", ["evidence_status", "link_kind"])
    op.create_index("ix_event_sources_canonical_hash", "event_sources", ["canonical_url_hash"])

    op.create_table(
        "evidence_resolution_runs",
        sa.Column("run_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("mode", sa.String(length=32), nullable=False),
        sa.Column("params", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="started"),
        sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("resolved", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("run_id"),
    )
    op.create_index("ix_evidence_resolution_runs_started", "evidence_resolution_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_evidence_resolution_runs_started", table_name="evidence_resolution_runs")
    op.drop_table("evidence_resolution_runs")
    op.drop_index("ix_event_sources_canonical_hash", table_name="event_sources")
    op.drop_index("ix_event_sources_pending", table_name="event_sources")
    op.drop_index("ix_event_sources_event", table_name="event_sources")
    op.drop_table("event_sources")
    op.drop_table("brand_events")
