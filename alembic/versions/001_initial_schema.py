"""initial schema

Revision ID: 001
Revises:
Create Date: 2025-01-01 00:00:00.000000
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── sessions ──
    op.create_table(
        "sessions",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("adviser_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("file_url", sa.Text, nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_size", sa.BigInteger, nullable=True),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("language", sa.String(16), nullable=True),
        sa.Column("status", sa.String(32), server_default="uploaded"),
        sa.Column("transcription_text", sa.Text, nullable=True),
        sa.Column("transcription_metadata", sa.dialects.postgresql.JSONB, server_default="{}"),
        sa.Column("processing_metadata", sa.dialects.postgresql.JSONB, server_default="{}"),
        sa.Column("context", sa.dialects.postgresql.JSONB, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('uploaded', 'processing', 'transcribed', 'reports_generated', 'completed', 'failed')",
            name="ck_sessions_status",
        ),
    )
    op.create_index("ix_sessions_adviser_id", "sessions", ["adviser_id"])

    # ── reports ──
    op.create_table(
        "reports",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.dialects.postgresql.UUID(as_uuid=True), sa.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("version_number", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_current_version", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("parent_version_id", sa.dialects.postgresql.UUID(as_uuid=True), sa.ForeignKey("reports.id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("generation_method", sa.String(32), server_default="ai_generated"),
        sa.Column("generation_metadata", sa.dialects.postgresql.JSONB, server_default="{}"),
        sa.Column("word_count", sa.Integer, nullable=True),
        sa.Column("character_count", sa.Integer, nullable=True),
        sa.Column("status", sa.String(32), server_default="draft"),
        sa.Column("approved_by", sa.dialects.postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("session_id", "type", "version_number", name="uq_reports_session_type_version"),
        sa.CheckConstraint("type IN ('adviser', 'client')", name="ck_reports_type"),
        sa.CheckConstraint("status IN ('draft', 'approved')", name="ck_reports_status"),
    )
    op.create_index("ix_reports_current", "reports", ["session_id", "type", "is_current_version"])
    # at most one current version per session + type
    op.create_index(
        "uq_reports_one_current",
        "reports",
        ["session_id", "type"],
        unique=True,
        postgresql_where=sa.text("is_current_version"),
    )

    # ── jobs ──
    op.create_table(
        "jobs",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("job_type", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), server_default="pending"),
        sa.Column("priority", sa.Integer, server_default="0"),
        sa.Column("payload", sa.dialects.postgresql.JSONB, server_default="{}"),
        sa.Column("result", sa.dialects.postgresql.JSONB, nullable=True),
        sa.Column("error_log", sa.Text, nullable=True),
        sa.Column("attempts", sa.Integer, server_default="0"),
        sa.Column("max_attempts", sa.Integer, server_default="3"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "job_type IN ('transcribe', 'generate_reports', 'regenerate_report')",
            name="ck_jobs_type",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'retry', 'failed')",
            name="ck_jobs_status",
        ),
    )
    op.create_index("ix_jobs_queue_order", "jobs", ["status", "priority", "scheduled_at"])
    op.create_index("ix_jobs_session_id", "jobs", ["session_id"])

    # ── events ──
    op.create_table(
        "events",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("event_type", sa.String(128), nullable=False),
        sa.Column("level", sa.String(16), server_default="info"),
        sa.Column("source", sa.String(128), nullable=True),
        sa.Column("channel", sa.String(128), nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("metadata", sa.dialects.postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_events_type", "events", ["event_type"])
    op.create_index("ix_events_channel", "events", ["channel", "created_at"])


def downgrade() -> None:
    for table in ["events", "jobs", "reports", "sessions"]:
        op.drop_table(table)
