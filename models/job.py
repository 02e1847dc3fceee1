# models/job.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKey, utcnow

JOB_TRANSCRIBE = "transcribe"
JOB_GENERATE_REPORTS = "generate_reports"
JOB_REGENERATE_REPORT = "regenerate_report"
JOB_TYPES = (JOB_TRANSCRIBE, JOB_GENERATE_REPORTS, JOB_REGENERATE_REPORT)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_RETRY = "retry"
STATUS_FAILED = "failed"
READY_STATUSES = (STATUS_PENDING, STATUS_RETRY)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)


class Job(Base, UUIDPrimaryKey, TimestampMixin):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_queue_order", "status", "priority", "scheduled_at"),
        Index("ix_jobs_session_id", "session_id"),
    )

    session_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    job_type: Mapped[str] = mapped_column(String(64), nullable=False)

    # pending | processing | completed | retry | failed
    status: Mapped[str] = mapped_column(String(32), default=STATUS_PENDING)
    # lower value is served first
    priority: Mapped[int] = mapped_column(Integer, default=0)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict)
    result: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error_log: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
