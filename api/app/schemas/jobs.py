# api/app/schemas/jobs.py
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class JobOut(BaseModel):
    id: uuid.UUID
    session_id: uuid.UUID | None = None
    job_type: str
    status: str
    priority: int
    attempts: int
    max_attempts: int
    scheduled_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_log: str | None = None
    result: dict | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class JobStats(BaseModel):
    by_status: dict[str, int]
    by_type: dict[str, int]
