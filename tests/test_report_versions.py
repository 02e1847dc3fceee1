# tests/test_report_versions.py
from __future__ import annotations

import json
import uuid

import pytest

from jobs.errors import MissingTranscriptError, ReportNotFoundError
from jobs.queue import JobQueue
from models.job import JOB_REGENERATE_REPORT
from services.report_versions import ReportVersionStore


def _store(session_factory) -> tuple[JobQueue, ReportVersionStore]:
    queue = JobQueue(session_factory)
    return queue, ReportVersionStore(session_factory, queue, regenerate_priority=1)


@pytest.mark.asyncio
async def test_create_report_is_current_draft_v1(session_factory, make_session):
    session = await make_session(transcription_text="text")
    _, store = _store(session_factory)

    report = await store.create_report(session.id, "client", {"general_summary": "hello world"}, {"model": "m"})

    assert report.version_number == 1
    assert report.is_current_version is True
    assert report.status == "draft"
    assert json.loads(report.content) == {"general_summary": "hello world"}
    assert report.character_count == len(report.content)
    assert report.word_count == 3


@pytest.mark.asyncio
async def test_regenerate_creates_next_version_and_retires_old(session_factory, make_session):
    session = await make_session(transcription_text="We met.")
    queue, store = _store(session_factory)
    original = await store.create_report(session.id, "adviser", {"topics": []}, {})

    new, job = await store.regenerate(original.id, "More on pricing", requested_by=None)

    rows = await store.versions(session.id, "adviser")
    assert len(rows) == 2
    assert [r.is_current_version for r in rows].count(True) == 1
    current = next(r for r in rows if r.is_current_version)
    assert current.id == new.id
    assert current.version_number == original.version_number + 1
    assert current.parent_version_id == original.id
    assert current.generation_method == "ai_regenerated"
    assert current.generation_metadata["status"] == "pending"

    stored_job = await queue.get(job.id)
    assert stored_job.job_type == JOB_REGENERATE_REPORT
    assert stored_job.priority == 1
    assert stored_job.payload["old_report_id"] == str(original.id)
    assert stored_job.payload["new_report_id"] == str(new.id)
    assert stored_job.payload["notes"] == "More on pricing"


@pytest.mark.asyncio
async def test_regenerate_twice_keeps_one_current(session_factory, make_session):
    session = await make_session(transcription_text="We met.")
    _, store = _store(session_factory)
    v1 = await store.create_report(session.id, "client", {}, {})
    v2, _ = await store.regenerate(v1.id, "again", None)
    v3, _ = await store.regenerate(v2.id, "and again", None)

    rows = await store.versions(session.id, "client")
    assert [r.version_number for r in rows] == [3, 2, 1]
    assert [r.id for r in rows if r.is_current_version] == [v3.id]

    current = await store.current_reports(session.id)
    assert [r.id for r in current] == [v3.id]


@pytest.mark.asyncio
async def test_regenerate_without_transcript_changes_nothing(session_factory, make_session):
    session = await make_session()
    queue, store = _store(session_factory)
    original = await store.create_report(session.id, "client", {}, {})

    with pytest.raises(MissingTranscriptError):
        await store.regenerate(original.id, "notes", None)

    rows = await store.versions(session.id, "client")
    assert len(rows) == 1
    assert rows[0].is_current_version is True
    assert await queue.jobs_for_session(session.id) == []


@pytest.mark.asyncio
async def test_regenerate_unknown_report(session_factory):
    _, store = _store(session_factory)
    with pytest.raises(ReportNotFoundError):
        await store.regenerate(uuid.uuid4(), "notes", None)


@pytest.mark.asyncio
async def test_approve_is_a_status_flip(session_factory, make_session):
    session = await make_session(transcription_text="text")
    _, store = _store(session_factory)
    report = await store.create_report(session.id, "client", {}, {})
    approver = uuid.uuid4()

    approved = await store.approve(report.id, approved_by=approver, notes="Looks good")

    assert approved.status == "approved"
    assert approved.approved_by == approver
    assert approved.approval_notes == "Looks good"
    assert approved.approved_at is not None
    assert approved.version_number == 1
    assert len(await store.versions(session.id, "client")) == 1


@pytest.mark.asyncio
async def test_create_report_after_existing_takes_next_version(session_factory, make_session):
    session = await make_session(transcription_text="text")
    _, store = _store(session_factory)
    await store.create_report(session.id, "client", {}, {})

    second = await store.create_report(session.id, "client", {}, {})

    assert second.version_number == 2
    assert [r.id for r in await store.current_reports(session.id)] == [second.id]
