# services/session_records.py
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobs.errors import SessionNotFoundError
from models.recording_session import RecordingSession, can_transition

logger = logging.getLogger(__name__)


class SessionRecords:
    """Reads and updates recording sessions on behalf of the pipelines."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def get(self, session_id: uuid.UUID) -> RecordingSession:
        async with self._sessions() as db:
            row = await db.get(RecordingSession, session_id)
        if row is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return row

    async def update(
        self,
        session_id: uuid.UUID,
        status: str | None = None,
        processing_metadata: dict | None = None,
        **fields,
    ) -> RecordingSession:
        """
        Applies column updates. processing_metadata is merged into the
        existing dict. A status change the state machine does not allow
        is logged and skipped; the other fields are still written.
        """
        async with self._sessions() as db, db.begin():
            row = await db.get(RecordingSession, session_id, with_for_update=True)
            if row is None:
                raise SessionNotFoundError(f"Session not found: {session_id}")

            if status is not None:
                if can_transition(row.status, status):
                    row.status = status
                else:
                    logger.warning(
                        "Session %s: invalid transition %s -> %s skipped",
                        session_id,
                        row.status,
                        status,
                    )

            if processing_metadata:
                row.processing_metadata = {**(row.processing_metadata or {}), **processing_metadata}

            for name, value in fields.items():
                setattr(row, name, value)

            await db.flush()
            return row
