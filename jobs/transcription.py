# jobs/transcription.py
"""
Transcription of one recording session.

Files above the chunk threshold are cut into ~target-size pieces and
transcribed one at a time. A failed piece leaves a placeholder in the
transcript; only a run where every piece fails is an error.
"""
from __future__ import annotations

import logging
import shutil
import tempfile
import time
from datetime import timedelta
from pathlib import Path
from typing import Awaitable, Callable

from api.app.config import Settings
from jobs.errors import AllChunksFailedError, MissingMediaError
from jobs.queue import JobQueue
from models.base import utcnow
from models.job import JOB_GENERATE_REPORTS, Job
from models.recording_session import SESSION_FAILED, SESSION_PROCESSING, SESSION_TRANSCRIBED, RecordingSession
from services.media_fetch import local_media
from services.media_splitter import AudioChunk, split_media
from services.notifier import ProgressNotifier, notify_session
from services.openai_stt import TranscriptionResult
from services.session_records import SessionRecords

logger = logging.getLogger(__name__)

FAILED_CHUNK_TEXT = "[Chunk {n} transcription failed]"

Splitter = Callable[..., Awaitable[list[AudioChunk]]]


def merge_transcripts(texts: list[str], batch_size: int = 10) -> str:
    """Joins texts in order, batch_size at a time."""
    merged: list[str] = []
    for i in range(0, len(texts), max(1, batch_size)):
        batch = " ".join(t.strip() for t in texts[i:i + batch_size] if t and t.strip())
        if batch:
            merged.append(batch)
    return " ".join(merged)


class TranscriptionPipeline:
    def __init__(
        self,
        sessions: SessionRecords,
        queue: JobQueue,
        engine,
        notifier: ProgressNotifier,
        settings: Settings,
        splitter: Splitter = split_media,
    ) -> None:
        self.sessions = sessions
        self.queue = queue
        self.engine = engine
        self.notifier = notifier
        self.settings = settings
        self.splitter = splitter

    async def run(self, job: Job) -> dict:
        payload = job.payload or {}
        session = await self.sessions.get(job.session_id)

        file_url = payload.get("file_url") or session.file_url
        file_name = payload.get("file_name") or session.file_name or Path(file_url or "audio").name
        language = payload.get("language") or session.language

        logger.info("Transcription started for session %s (%s)", session.id, file_name)

        await self.sessions.update(
            session.id,
            status=SESSION_PROCESSING,
            processing_metadata={
                "transcription_started_at": utcnow().isoformat(),
                "transcription_job_id": str(job.id),
            },
        )
        await notify_session(self.notifier, session, "transcription_started", {
            "file_name": file_name,
            "message": "Transcription started",
        })

        try:
            if not file_url:
                raise MissingMediaError(f"Session {session.id} has no media location")
            result = await self._transcribe(session, file_url, file_name, language)
        except Exception as exc:
            await self._record_failure(session, exc)
            raise

        await self.sessions.update(
            session.id,
            status=SESSION_TRANSCRIBED,
            transcription_text=result.text,
            transcription_metadata={
                **result.metadata,
                "language": result.language,
                "duration_seconds": result.duration_seconds,
            },
            processing_metadata={"transcription_completed_at": utcnow().isoformat()},
        )
        await notify_session(self.notifier, session, "transcription_complete", {
            "transcript_length": len(result.text),
            "chunked": result.metadata.get("chunked", False),
            "message": "Transcription complete",
        })

        report_job = await self.queue.enqueue(
            session.id,
            JOB_GENERATE_REPORTS,
            payload={"language": result.language},
            priority=self.settings.report_job_priority,
        )

        return {
            "transcript_length": len(result.text),
            "language": result.language,
            "chunked": result.metadata.get("chunked", False),
            "successful_chunks": result.metadata.get("successful_chunks"),
            "failed_chunks": result.metadata.get("failed_chunks"),
            "report_job_id": str(report_job.id),
        }

    async def _transcribe(
        self,
        session: RecordingSession,
        file_url: str,
        file_name: str,
        language: str | None,
    ) -> TranscriptionResult:
        work_dir = Path(tempfile.mkdtemp(prefix=f"transcribe_{session.id}_", dir=self.settings.temp_dir))
        try:
            async with local_media(
                file_url,
                work_dir,
                file_name=file_name,
                timeout=self.settings.media_download_timeout,
            ) as source:
                size = source.stat().st_size

                if size > self.settings.transcription_chunk_threshold_bytes:
                    logger.info(
                        "Large file (%.2fMB > %.0fMB), using chunked transcription",
                        size / (1024 * 1024),
                        self.settings.transcription_chunk_threshold_mb,
                    )
                    return await self._transcribe_chunked(session, source, work_dir, size, file_name, language)

                result = await self.engine.transcribe(source, file_name, language=language)
                result.metadata = {**result.metadata, "chunked": False}
                return result
        finally:
            self._cleanup(work_dir)

    async def _transcribe_chunked(
        self,
        session: RecordingSession,
        source: Path,
        work_dir: Path,
        size: int,
        file_name: str,
        language: str | None,
    ) -> TranscriptionResult:
        t0 = time.monotonic()

        await notify_session(self.notifier, session, "transcription_chunking_started", {
            "file_size_mb": round(size / (1024 * 1024), 2),
            "message": "Splitting audio into chunks",
        })

        chunk_dir = work_dir / "chunks"
        chunk_dir.mkdir()
        chunks = await self.splitter(
            source,
            chunk_dir,
            total_bytes=size,
            target_bytes=self.settings.transcription_target_chunk_bytes,
            min_seconds=self.settings.transcription_min_chunk_seconds,
        )
        total = len(chunks)

        await notify_session(self.notifier, session, "transcription_chunks_created", {
            "total_chunks": total,
            "message": f"Created {total} chunks",
        })

        stem, suffix = Path(file_name).stem, Path(file_name).suffix
        texts: list[str] = []
        successful = 0
        detected_language = language
        engine_meta: dict = {}

        for chunk in chunks:
            n = chunk.index + 1
            await notify_session(self.notifier, session, "transcription_chunk_progress", {
                "chunk": n,
                "total_chunks": total,
                "start_time": chunk.start_time,
                "end_time": chunk.end_time,
            })

            try:
                res = await self.engine.transcribe(chunk.path, f"{stem}_chunk_{n}{suffix}", language=language)
            except Exception as exc:
                logger.error("Chunk %d/%d failed for session %s: %s", n, total, session.id, exc)
                texts.append(FAILED_CHUNK_TEXT.format(n=n))
                await notify_session(self.notifier, session, "transcription_chunk_failed", {
                    "chunk": n,
                    "total_chunks": total,
                    "error": str(exc),
                })
                continue

            successful += 1
            texts.append(res.text)
            detected_language = detected_language or res.language
            engine_meta = engine_meta or dict(res.metadata or {})
            await notify_session(self.notifier, session, "transcription_chunk_completed", {
                "chunk": n,
                "total_chunks": total,
                "text_length": len(res.text),
            })

        failed = total - successful
        if successful == 0:
            raise AllChunksFailedError(f"All {total} chunks failed to transcribe")

        text = merge_transcripts(texts, self.settings.transcript_merge_batch_size)

        await notify_session(self.notifier, session, "transcription_chunking_completed", {
            "total_chunks": total,
            "successful_chunks": successful,
            "failed_chunks": failed,
        })
        logger.info(
            "Chunked transcription done for session %s: %d/%d chunks, %d chars",
            session.id,
            successful,
            total,
            len(text),
        )

        return TranscriptionResult(
            text=text,
            language=detected_language,
            duration_seconds=chunks[-1].end_time if chunks else None,
            metadata={
                "model": engine_meta.get("model"),
                "processing_time_ms": int((time.monotonic() - t0) * 1000),
                "file_size_mb": round(size / (1024 * 1024), 2),
                "transcribed_at": utcnow().isoformat(),
                "mock_mode": engine_meta.get("mock_mode", False),
                "chunked": True,
                "total_chunks": total,
                "successful_chunks": successful,
                "failed_chunks": failed,
            },
        )

    def _cleanup(self, work_dir: Path) -> None:
        shutil.rmtree(work_dir, ignore_errors=True)
        logger.debug("Removed temp dir %s", work_dir)
        self._sweep_stale_dirs()

    def _sweep_stale_dirs(self) -> None:
        """Best-effort removal of work dirs left behind by runs that never reached cleanup."""
        cutoff = (utcnow() - timedelta(seconds=self.settings.temp_max_age_seconds)).timestamp()
        try:
            candidates = list(self.settings.temp_dir.glob("transcribe_*"))
        except OSError as exc:
            logger.warning("Could not scan temp dir for stale runs: %s", exc)
            return

        for path in candidates:
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                if path.is_dir():
                    shutil.rmtree(path, ignore_errors=True)
                else:
                    path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove stale temp entry %s: %s", path, exc)
                continue
            logger.info("Removed stale temp entry %s", path)

    async def _record_failure(self, session: RecordingSession, exc: Exception) -> None:
        logger.error("Transcription failed for session %s: %s", session.id, exc)
        try:
            await self.sessions.update(
                session.id,
                status=SESSION_FAILED,
                processing_metadata={
                    "transcription_error": str(exc),
                    "transcription_failed_at": utcnow().isoformat(),
                },
            )
        except Exception as update_exc:
            logger.error("Could not mark session %s failed: %s", session.id, update_exc)

        await notify_session(self.notifier, session, "transcription_error", {
            "error": str(exc),
            "message": "Transcription failed",
        })
