# api/app/routes/sessions.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.app.config import get_settings
from api.app.dependencies import get_queue, get_session
from api.app.schemas.jobs import JobOut
from jobs.queue import JobQueue
from models.job import JOB_TRANSCRIBE
from models.recording_session import SESSION_PROCESSING, RecordingSession, can_transition

router = APIRouter(tags=["sessions"])


@router.post("/sessions/{session_id}/transcribe", response_model=JobOut, status_code=202)
async def start_transcription(
    session_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    queue: JobQueue = Depends(get_queue),
):
    """Queue a transcribe job for an uploaded (or previously failed) session."""
    session = await db.get(RecordingSession, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    if not session.file_url:
        raise HTTPException(status_code=409, detail="Session has no uploaded media")
    if not can_transition(session.status, SESSION_PROCESSING) or session.status == SESSION_PROCESSING:
        raise HTTPException(status_code=409, detail=f"Session is {session.status}")

    return await queue.enqueue(
        session.id,
        JOB_TRANSCRIBE,
        payload={
            "file_url": session.file_url,
            "file_name": session.file_name,
            "file_size": session.file_size,
            "language": session.language,
        },
        priority=get_settings().transcribe_job_priority,
    )
