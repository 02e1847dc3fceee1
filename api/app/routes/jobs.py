# api/app/routes/jobs.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from api.app.dependencies import get_queue
from api.app.schemas.jobs import JobOut, JobStats
from jobs.queue import JobQueue

router = APIRouter(tags=["jobs"])


@router.get("/sessions/{session_id}/jobs", response_model=list[JobOut])
async def list_session_jobs(session_id: uuid.UUID, queue: JobQueue = Depends(get_queue)):
    return await queue.jobs_for_session(session_id)


@router.get("/jobs/stats", response_model=JobStats)
async def job_stats(queue: JobQueue = Depends(get_queue)):
    return await queue.stats()
