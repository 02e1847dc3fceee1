# models/report.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKey

REPORT_ADVISER = "adviser"
REPORT_CLIENT = "client"
REPORT_TYPES = (REPORT_ADVISER, REPORT_CLIENT)

REPORT_DRAFT = "draft"
REPORT_APPROVED = "approved"


class Report(Base, UUIDPrimaryKey, TimestampMixin):
    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint("session_id", "type", "version_number", name="uq_reports_session_type_version"),
        Index("ix_reports_current", "session_id", "type", "is_current_version"),
        Index(
            "uq_reports_one_current",
            "session_id",
            "type",
            unique=True,
            postgresql_where=text("is_current_version"),
            sqlite_where=text("is_current_version"),
        ),
    )

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)  # adviser | client

    # Versioning
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_current_version: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    parent_version_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("reports.id"), nullable=True
    )

    # Content
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    generation_method: Mapped[str] = mapped_column(String(32), default="ai_generated")
    generation_metadata: Mapped[dict] = mapped_column(JSONType, default=dict)
    word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    character_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Approval
    status: Mapped[str] = mapped_column(String(32), default=REPORT_DRAFT)  # draft | approved
    approved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
