# api/app/routes/reports.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException

from api.app.dependencies import get_report_store
from api.app.schemas.reports import ApproveRequest, RegenerateRequest, RegenerateResponse, ReportOut
from jobs.errors import MissingTranscriptError, ReportNotFoundError
from services.report_versions import ReportVersionStore

router = APIRouter(tags=["reports"])


@router.get("/sessions/{session_id}/reports", response_model=list[ReportOut])
async def list_current_reports(
    session_id: uuid.UUID,
    store: ReportVersionStore = Depends(get_report_store),
):
    return await store.current_reports(session_id)


@router.get("/sessions/{session_id}/reports/{report_type}/versions", response_model=list[ReportOut])
async def list_report_versions(
    session_id: uuid.UUID,
    report_type: str,
    store: ReportVersionStore = Depends(get_report_store),
):
    return await store.versions(session_id, report_type)


@router.post("/reports/{report_id}/regenerate", response_model=RegenerateResponse, status_code=202)
async def regenerate_report(
    report_id: uuid.UUID,
    body: RegenerateRequest,
    store: ReportVersionStore = Depends(get_report_store),
):
    if not body.notes.strip():
        raise HTTPException(status_code=400, detail="Notes are required to regenerate a report")

    try:
        report, job = await store.regenerate(report_id, body.notes.strip(), body.requested_by)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")
    except MissingTranscriptError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    return RegenerateResponse(report=ReportOut.model_validate(report), job_id=job.id)


@router.post("/reports/{report_id}/approve", response_model=ReportOut)
async def approve_report(
    report_id: uuid.UUID,
    body: ApproveRequest,
    store: ReportVersionStore = Depends(get_report_store),
):
    try:
        return await store.approve(report_id, approved_by=body.approved_by, notes=body.notes)
    except ReportNotFoundError:
        raise HTTPException(status_code=404, detail="Report not found")
