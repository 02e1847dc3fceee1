# tests/test_pipeline_scenarios.py
"""
End-to-end runs through the worker: real queue, real pipelines,
SQLite storage, mocked engines.
"""
from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from jobs.handlers import build_handlers
from jobs.queue import JobQueue
from jobs.reports import ReportPipeline
from jobs.transcription import TranscriptionPipeline, merge_transcripts
from models.job import JOB_GENERATE_REPORTS, JOB_TRANSCRIBE
from services.openai_llm import Completion
from services.openai_stt import TranscriptionResult
from services.report_versions import ReportVersionStore
from services.session_records import SessionRecords
from worker.main import Worker

MB = 1024 * 1024


def _sparse(path: Path, size: int) -> Path:
    with path.open("wb") as f:
        f.truncate(size)
    return path


def _build(session_factory, settings, notifier, stt, llm):
    queue = JobQueue(session_factory)
    sessions = SessionRecords(session_factory)
    store = ReportVersionStore(session_factory, queue, regenerate_priority=settings.regenerate_job_priority)
    transcription = TranscriptionPipeline(sessions, queue, stt, notifier, settings)
    reports = ReportPipeline(sessions, store, llm, notifier, settings)
    worker = Worker(queue, build_handlers(transcription, reports), poll_interval=0.01)
    return queue, sessions, store, worker


@pytest.mark.asyncio
async def test_small_file_transcribed_directly_then_reports_queued(
    session_factory, settings, notifier, make_session, tmp_path
):
    source = _sparse(tmp_path / "meeting.mp3", 2 * MB)
    session = await make_session(file_url=str(source), duration=180)

    stt = AsyncMock()
    stt.transcribe.return_value = TranscriptionResult(text="Short meeting.", language="en", duration_seconds=180.0)
    llm = AsyncMock()
    queue, sessions, _, worker = _build(session_factory, settings, notifier, stt, llm)

    job = await queue.enqueue(
        session.id,
        JOB_TRANSCRIBE,
        {"file_url": str(source), "file_name": "meeting.mp3", "file_size": 2 * MB},
        priority=settings.transcribe_job_priority,
    )
    assert await worker.run_once() is True

    stt.transcribe.assert_awaited_once()
    stored = await sessions.get(session.id)
    assert stored.status == "transcribed"
    assert stored.transcription_text == "Short meeting."
    assert stored.transcription_metadata["chunked"] is False

    assert (await queue.get(job.id)).status == "completed"

    jobs = await queue.jobs_for_session(session.id)
    report_jobs = [j for j in jobs if j.job_type == JOB_GENERATE_REPORTS]
    assert len(report_jobs) == 1
    assert report_jobs[0].status == "pending"
    assert report_jobs[0].priority > settings.transcribe_job_priority

    # a transcribe job queued afterwards is still served first
    other = await make_session(file_url=str(source))
    later = await queue.enqueue(other.id, JOB_TRANSCRIBE, {}, priority=settings.transcribe_job_priority)
    assert (await queue.dequeue_next()).id == later.id


@pytest.mark.asyncio
async def test_large_file_chunked_and_merged_in_order(
    session_factory, settings, notifier, make_session, tmp_path
):
    source = _sparse(tmp_path / "long_meeting.mp3", 60 * MB)
    session = await make_session(file_url=str(source), file_name="long_meeting.mp3", duration=2400)

    texts = []

    async def transcribe(path, file_name, language=None):
        text = f"Part {len(texts) + 1} from {Path(path).name}."
        texts.append(text)
        return TranscriptionResult(text=text, language="en")

    stt = AsyncMock()
    stt.transcribe.side_effect = transcribe

    async def fake_cut(path, start, duration, out_path):
        Path(out_path).write_bytes(b"x" * 64)
        return Path(out_path)

    queue, sessions, _, worker = _build(session_factory, settings, notifier, stt, AsyncMock())
    await queue.enqueue(session.id, JOB_TRANSCRIBE, {"file_url": str(source)}, priority=5)

    with patch("services.media_splitter.media_probe.get_duration", new_callable=AsyncMock, return_value=2400.0), \
         patch("services.media_splitter.media_probe.split_range", new_callable=AsyncMock, side_effect=fake_cut):
        await worker.run_once()

    assert stt.transcribe.await_count >= 5
    file_names = [call.args[1] for call in stt.transcribe.await_args_list]
    assert file_names == [f"long_meeting_chunk_{i}.mp3" for i in range(1, len(file_names) + 1)]

    stored = await sessions.get(session.id)
    assert stored.status == "transcribed"
    assert stored.transcription_text == merge_transcripts(texts)
    assert stored.transcription_metadata["total_chunks"] == len(texts)
    assert stored.transcription_metadata["failed_chunks"] == 0


@pytest.mark.asyncio
async def test_transcribe_then_generate_reports(session_factory, settings, notifier, make_session, tmp_path):
    source = _sparse(tmp_path / "meeting.mp3", 4096)
    session = await make_session(file_url=str(source), context={"client_name": "Dana", "adviser_name": "Avi"})

    stt = AsyncMock()
    stt.transcribe.return_value = TranscriptionResult(text="We agreed on a plan.", language="en")
    llm = AsyncMock()
    llm.complete.return_value = Completion(text='{"general_summary": "ok"}', model="gpt-4o-mini", tokens_used=12)
    queue, sessions, store, worker = _build(session_factory, settings, notifier, stt, llm)

    await queue.enqueue(session.id, JOB_TRANSCRIBE, {}, priority=5)
    await worker.run_once()
    await worker.run_once()

    stored = await sessions.get(session.id)
    assert stored.status == "reports_generated"
    current = await store.current_reports(session.id)
    assert sorted(r.type for r in current) == ["adviser", "client"]
    assert all(r.version_number == 1 for r in current)
    assert llm.complete.await_count == 2
