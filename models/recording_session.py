# models/recording_session.py
from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKey

SESSION_UPLOADED = "uploaded"
SESSION_PROCESSING = "processing"
SESSION_TRANSCRIBED = "transcribed"
SESSION_REPORTS_GENERATED = "reports_generated"
SESSION_COMPLETED = "completed"
SESSION_FAILED = "failed"

# failed -> processing lets a retried job pick the session back up
SESSION_TRANSITIONS: dict[str, set[str]] = {
    SESSION_UPLOADED: {SESSION_PROCESSING, SESSION_FAILED},
    SESSION_PROCESSING: {SESSION_TRANSCRIBED, SESSION_FAILED},
    SESSION_TRANSCRIBED: {SESSION_PROCESSING, SESSION_REPORTS_GENERATED, SESSION_FAILED},
    SESSION_REPORTS_GENERATED: {SESSION_COMPLETED, SESSION_FAILED},
    SESSION_COMPLETED: set(),
    SESSION_FAILED: {SESSION_PROCESSING, SESSION_REPORTS_GENERATED},
}


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    return target in SESSION_TRANSITIONS.get(current, set())


class RecordingSession(Base, UUIDPrimaryKey, TimestampMixin):
    """A recorded advisory meeting. Rows are created by the CRUD layer."""

    __tablename__ = "sessions"

    adviser_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Source media
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)

    # uploaded | processing | transcribed | reports_generated | completed | failed
    status: Mapped[str] = mapped_column(String(32), default=SESSION_UPLOADED)

    transcription_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcription_metadata: Mapped[dict] = mapped_column(JSONType, default=dict)
    processing_metadata: Mapped[dict] = mapped_column(JSONType, default=dict)

    # client / adviser details denormalised by the CRUD layer
    context: Mapped[dict] = mapped_column(JSONType, default=dict)
