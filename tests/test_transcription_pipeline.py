# tests/test_transcription_pipeline.py
"""
Transcription pipeline against SQLite with the engine mocked out.
Chunk cutting is faked; everything else runs for real.
"""
from __future__ import annotations

import os
import time
import uuid
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from jobs.errors import AllChunksFailedError, MissingMediaError
from jobs.queue import JobQueue
from jobs.transcription import TranscriptionPipeline, merge_transcripts
from models.job import JOB_TRANSCRIBE
from services.media_splitter import AudioChunk
from services.notifier import session_channel, user_channel
from services.openai_stt import TranscriptionResult
from services.session_records import SessionRecords
from worker.main import Worker

MB = 1024 * 1024


def _result(text: str) -> TranscriptionResult:
    return TranscriptionResult(text=text, language="he", duration_seconds=60.0, metadata={"model": "whisper-1"})


def _audio_file(tmp_path: Path, size: int, name: str = "meeting.mp3") -> Path:
    path = tmp_path / name
    with path.open("wb") as f:
        f.truncate(size)  # sparse
    return path


def _fake_splitter(count: int):
    async def split(source, out_dir, total_bytes, target_bytes, min_seconds):
        chunks = []
        for i in range(count):
            p = Path(out_dir) / f"chunk_{i:03d}.mp3"
            p.write_bytes(b"x" * 10)
            chunks.append(AudioChunk(index=i, path=p, start_time=i * 60.0, end_time=(i + 1) * 60.0, size_bytes=10))
        return chunks

    return split


def test_merge_preserves_order_across_batches():
    texts = [f"t{i}" for i in range(25)]
    assert merge_transcripts(texts, batch_size=10) == " ".join(texts)
    assert merge_transcripts(texts, batch_size=10) == merge_transcripts(texts, batch_size=3)


def test_merge_skips_blank_texts():
    assert merge_transcripts(["a", " ", "", "b"]) == "a b"


async def _setup(session_factory, settings, notifier, engine, splitter=None, **session_fields):
    queue = JobQueue(session_factory)
    sessions = SessionRecords(session_factory)
    kwargs = {"splitter": splitter} if splitter else {}
    pipeline = TranscriptionPipeline(sessions, queue, engine, notifier, settings, **kwargs)
    return queue, sessions, pipeline


@pytest.mark.asyncio
async def test_failed_chunk_leaves_placeholder(session_factory, settings, notifier, make_session, tmp_path):
    settings.transcription_chunk_threshold_mb = 0.5
    source = _audio_file(tmp_path, 1 * MB)
    session = await make_session(file_url=str(source))

    engine = AsyncMock()
    engine.transcribe.side_effect = [_result("one"), RuntimeError("429 rate limited"), _result("three")]
    queue, sessions, pipeline = await _setup(session_factory, settings, notifier, engine, _fake_splitter(3))

    job = await queue.enqueue(session.id, JOB_TRANSCRIBE, {"file_url": str(source), "file_name": "meeting.mp3"})
    result = await pipeline.run(job)

    stored = await sessions.get(session.id)
    assert stored.transcription_text == merge_transcripts(["one", "[Chunk 2 transcription failed]", "three"])
    assert stored.status == "transcribed"
    assert stored.transcription_metadata["successful_chunks"] == 2
    assert stored.transcription_metadata["failed_chunks"] == 1
    assert result["successful_chunks"] == 2

    names = notifier.names(session_channel(session.id))
    assert names[:3] == ["transcription_started", "transcription_chunking_started", "transcription_chunks_created"]
    assert names.count("transcription_chunk_progress") == 3
    assert names.count("transcription_chunk_completed") == 2
    assert names.count("transcription_chunk_failed") == 1
    assert names[-2:] == ["transcription_chunking_completed", "transcription_complete"]


@pytest.mark.asyncio
async def test_all_chunks_failing_is_fatal_and_cleans_up_once(
    session_factory, settings, notifier, make_session, tmp_path
):
    settings.transcription_chunk_threshold_mb = 0.5
    source = _audio_file(tmp_path, 1 * MB)
    session = await make_session(file_url=str(source))

    engine = AsyncMock()
    engine.transcribe.side_effect = RuntimeError("engine down")
    queue, sessions, pipeline = await _setup(session_factory, settings, notifier, engine, _fake_splitter(3))
    job = await queue.enqueue(session.id, JOB_TRANSCRIBE, {"file_url": str(source)})

    with patch.object(pipeline, "_cleanup", wraps=pipeline._cleanup) as cleanup:
        with pytest.raises(AllChunksFailedError):
            await pipeline.run(job)

    cleanup.assert_called_once()
    work_dir = cleanup.call_args.args[0]
    assert not work_dir.exists()

    stored = await sessions.get(session.id)
    assert stored.status == "failed"
    assert "All 3 chunks failed" in stored.processing_metadata["transcription_error"]
    assert "transcription_error" in notifier.names()

    # no report job on failure
    jobs = await queue.jobs_for_session(session.id)
    assert [j.job_type for j in jobs] == [JOB_TRANSCRIBE]


@pytest.mark.asyncio
async def test_missing_media_marks_session_failed(session_factory, settings, notifier, make_session, tmp_path):
    session = await make_session(file_url=str(tmp_path / "gone.mp3"))
    engine = AsyncMock()
    queue, sessions, pipeline = await _setup(session_factory, settings, notifier, engine)
    job = await queue.enqueue(session.id, JOB_TRANSCRIBE, {})

    with pytest.raises(MissingMediaError):
        await pipeline.run(job)

    engine.transcribe.assert_not_awaited()
    assert (await sessions.get(session.id)).status == "failed"


@pytest.mark.asyncio
async def test_session_without_media_location_is_fatal(session_factory, settings, notifier, make_session):
    session = await make_session()
    queue, sessions, pipeline = await _setup(session_factory, settings, notifier, AsyncMock())

    with pytest.raises(MissingMediaError):
        await pipeline.run(await queue.enqueue(session.id, JOB_TRANSCRIBE, {}))

    assert (await sessions.get(session.id)).status == "failed"


@pytest.mark.asyncio
async def test_worker_fails_missing_media_job_after_one_attempt(
    session_factory, settings, notifier, make_session, tmp_path
):
    session = await make_session(file_url=str(tmp_path / "gone.mp3"))
    queue, _, pipeline = await _setup(session_factory, settings, notifier, AsyncMock())
    job = await queue.enqueue(session.id, JOB_TRANSCRIBE, {}, max_attempts=3)
    worker = Worker(queue, {JOB_TRANSCRIBE: pipeline.run}, poll_interval=0.01)

    assert await worker.run_once() is True

    stored = await queue.get(job.id)
    assert stored.status == "failed"
    assert stored.attempts == 1
    assert "Media file not found" in stored.error_log
    assert await worker.run_once() is False


@pytest.mark.asyncio
async def test_stale_work_dirs_are_swept_after_a_run(session_factory, settings, notifier, make_session, tmp_path):
    stale = settings.temp_dir / "transcribe_crashed_run"
    stale.mkdir()
    (stale / "chunk_000.mp3").write_bytes(b"x")
    two_hours_ago = time.time() - 2 * 3600
    os.utime(stale, (two_hours_ago, two_hours_ago))
    fresh = settings.temp_dir / "transcribe_other_worker"
    fresh.mkdir()
    unrelated = settings.temp_dir / "keep_me"
    unrelated.mkdir()
    os.utime(unrelated, (two_hours_ago, two_hours_ago))

    source = _audio_file(tmp_path, 2048)
    session = await make_session(file_url=str(source))
    engine = AsyncMock()
    engine.transcribe.return_value = _result("hello")
    queue, _, pipeline = await _setup(session_factory, settings, notifier, engine)

    await pipeline.run(await queue.enqueue(session.id, JOB_TRANSCRIBE, {}))

    assert not stale.exists()
    assert fresh.exists()
    assert unrelated.exists()
    assert [p.name for p in settings.temp_dir.glob("transcribe_*")] == ["transcribe_other_worker"]


@pytest.mark.asyncio
async def test_events_fan_out_to_adviser_channel(session_factory, settings, notifier, make_session, tmp_path):
    adviser_id = uuid.uuid4()
    source = _audio_file(tmp_path, 2048)
    session = await make_session(file_url=str(source), adviser_id=adviser_id)

    engine = AsyncMock()
    engine.transcribe.return_value = _result("hello")
    queue, _, pipeline = await _setup(session_factory, settings, notifier, engine)
    await pipeline.run(await queue.enqueue(session.id, JOB_TRANSCRIBE, {}))

    assert notifier.names(user_channel(adviser_id)) == notifier.names(session_channel(session.id))
