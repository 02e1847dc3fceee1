# api/app/schemas/reports.py
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class ReportOut(BaseModel):
    id: uuid.UUID
    session_id: uuid.UUID
    type: str
    version_number: int
    is_current_version: bool
    parent_version_id: uuid.UUID | None = None
    title: str | None = None
    status: str
    content: str
    generation_method: str
    generation_metadata: dict | None = None
    word_count: int | None = None
    character_count: int | None = None
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class RegenerateRequest(BaseModel):
    notes: str
    requested_by: uuid.UUID | None = None


class RegenerateResponse(BaseModel):
    report: ReportOut
    job_id: uuid.UUID


class ApproveRequest(BaseModel):
    approved_by: uuid.UUID | None = None
    notes: str | None = None
