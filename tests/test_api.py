# tests/test_api.py
from __future__ import annotations

import uuid

import httpx
import pytest
import pytest_asyncio

from api.app.dependencies import get_sessionmaker
from api.app.main import app
from jobs.queue import JobQueue
from models.job import JOB_TRANSCRIBE
from services.report_versions import ReportVersionStore


@pytest_asyncio.fixture
async def client(session_factory):
    app.dependency_overrides[get_sessionmaker] = lambda: session_factory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_transcribe_enqueues_job(client, make_session):
    session = await make_session(file_url="/data/meeting.mp3", language="he")

    resp = await client.post(f"/v1/sessions/{session.id}/transcribe")

    assert resp.status_code == 202
    body = resp.json()
    assert body["job_type"] == JOB_TRANSCRIBE
    assert body["priority"] == 5
    assert body["status"] == "pending"

    jobs = await client.get(f"/v1/sessions/{session.id}/jobs")
    assert [j["id"] for j in jobs.json()] == [body["id"]]

    stats = await client.get("/v1/jobs/stats")
    assert stats.json() == {"by_status": {"pending": 1}, "by_type": {"transcribe": 1}}


@pytest.mark.asyncio
async def test_transcribe_rejects_missing_or_busy_sessions(client, make_session):
    assert (await client.post(f"/v1/sessions/{uuid.uuid4()}/transcribe")).status_code == 404

    no_media = await make_session()
    assert (await client.post(f"/v1/sessions/{no_media.id}/transcribe")).status_code == 409

    busy = await make_session(file_url="/data/a.mp3", status="processing")
    assert (await client.post(f"/v1/sessions/{busy.id}/transcribe")).status_code == 409


@pytest.mark.asyncio
async def test_regenerate_validations(client, session_factory, make_session):
    store = ReportVersionStore(session_factory, JobQueue(session_factory))
    without_transcript = await make_session()
    report = await store.create_report(without_transcript.id, "client", {"general_summary": "x"}, {})

    blank = await client.post(f"/v1/reports/{report.id}/regenerate", json={"notes": "   "})
    assert blank.status_code == 400

    missing = await client.post(f"/v1/reports/{uuid.uuid4()}/regenerate", json={"notes": "more"})
    assert missing.status_code == 404

    no_text = await client.post(f"/v1/reports/{report.id}/regenerate", json={"notes": "more"})
    assert no_text.status_code == 409


@pytest.mark.asyncio
async def test_regenerate_returns_new_draft_and_job(client, session_factory, make_session):
    store = ReportVersionStore(session_factory, JobQueue(session_factory))
    session = await make_session(transcription_text="We met.")
    report = await store.create_report(session.id, "adviser", {"topics": []}, {})

    resp = await client.post(f"/v1/reports/{report.id}/regenerate", json={"notes": " Be brief "})

    assert resp.status_code == 202
    body = resp.json()
    assert body["report"]["version_number"] == 2
    assert body["report"]["parent_version_id"] == str(report.id)
    assert body["report"]["generation_metadata"]["notes"] == "Be brief"

    versions = await client.get(f"/v1/sessions/{session.id}/reports/adviser/versions")
    assert [v["version_number"] for v in versions.json()] == [2, 1]
    current = await client.get(f"/v1/sessions/{session.id}/reports")
    assert [r["id"] for r in current.json()] == [body["report"]["id"]]


@pytest.mark.asyncio
async def test_approve_report(client, session_factory, make_session):
    store = ReportVersionStore(session_factory, JobQueue(session_factory))
    session = await make_session(transcription_text="We met.")
    report = await store.create_report(session.id, "client", {}, {})

    resp = await client.post(f"/v1/reports/{report.id}/approve", json={"notes": "ok"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["approval_notes"] == "ok"
    assert (await client.post(f"/v1/reports/{uuid.uuid4()}/approve", json={})).status_code == 404
