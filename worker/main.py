# worker/main.py
"""
Background worker: polls the job queue and dispatches to handlers.

One job in flight per process; run more processes to scale out.
"""
from __future__ import annotations

import asyncio
import logging
import os
import platform
import signal
import sys
import traceback
import uuid

# Ensure project root is on path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from api.app.config import Settings, get_settings
from db.engine import build_engine
from db.session import build_session_factory
from jobs.errors import NonRetryableJobError
from jobs.handlers import Handler, build_handlers
from jobs.queue import JobQueue
from jobs.reports import ReportPipeline
from jobs.transcription import TranscriptionPipeline
from models.job import Job
from services.media_probe import check_available
from services.notifier import build_notifier
from services.openai_llm import ChatCompletionEngine
from services.openai_stt import WhisperTranscriptionEngine
from services.report_versions import ReportVersionStore
from services.session_records import SessionRecords

logger = logging.getLogger("worker")


WORKER_ID = f"worker-{platform.node()}-{uuid.uuid4().hex[:8]}"


class Worker:
    def __init__(
        self,
        queue: JobQueue,
        handlers: dict[str, Handler],
        poll_interval: float = 5.0,
        worker_id: str = WORKER_ID,
    ) -> None:
        self.queue = queue
        self.handlers = handlers
        self.poll_interval = poll_interval
        self.worker_id = worker_id
        self.current_job: Job | None = None
        self._stop = asyncio.Event()
        self._running = False

    def stop(self) -> None:
        """Ask the loop to exit after the job in flight, if any."""
        logger.info("Worker %s stopping", self.worker_id)
        self._stop.set()

    def status(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "running": self._running,
            "current_job_id": str(self.current_job.id) if self.current_job else None,
            "current_job_type": self.current_job.job_type if self.current_job else None,
            "poll_interval": self.poll_interval,
        }

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        self._running = True
        logger.info("Worker %s starting (poll=%.1fs)", self.worker_id, self.poll_interval)

        try:
            while not self._stop.is_set():
                try:
                    worked = await self.run_once()
                except Exception as exc:
                    logger.exception("Worker loop error: %s", exc)
                    await self._sleep(self.poll_interval * 2)
                    continue

                if not worked:
                    await self._sleep(self.poll_interval)
        finally:
            self._running = False
            logger.info("Worker %s stopped", self.worker_id)

    async def run_once(self) -> bool:
        """Claims and processes at most one job. False when the queue had nothing ready."""
        job = await self.queue.dequeue_next()
        if job is None:
            return False

        await self.process(job)
        return True

    async def process(self, job: Job) -> None:
        self.current_job = job
        try:
            handler = self.handlers.get(job.job_type)
            if handler is None:
                await self.queue.mark_failed(job.id, f"Unknown job type: {job.job_type}", retryable=False)
                return

            try:
                result = await handler(job)
            except NonRetryableJobError as exc:
                logger.error("Job %s [%s] failed permanently: %s", job.id, job.job_type, exc)
                await self.queue.mark_failed(job.id, str(exc), retryable=False)
            except Exception as exc:
                tb = traceback.format_exc()
                logger.error("Job %s [%s] failed: %s", job.id, job.job_type, exc)
                await self.queue.mark_failed(job.id, f"{exc}\n{tb}", retryable=True)
            else:
                await self.queue.mark_completed(job.id, result)
        finally:
            self.current_job = None


def build_worker(settings: Settings) -> tuple[Worker, ChatCompletionEngine]:
    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)

    queue = JobQueue(session_factory, default_max_attempts=settings.worker_max_attempts)
    sessions = SessionRecords(session_factory)
    notifier = build_notifier(settings.notifier_backend, session_factory)
    store = ReportVersionStore(session_factory, queue, regenerate_priority=settings.regenerate_job_priority)

    stt = WhisperTranscriptionEngine(
        api_key=settings.openai_api_key,
        model=settings.openai_stt_model,
        hard_limit_bytes=settings.transcription_hard_limit_bytes,
        mock_mode=settings.openai_mock_mode,
    )
    llm = ChatCompletionEngine(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        mock_mode=settings.openai_mock_mode,
    )

    transcription = TranscriptionPipeline(sessions, queue, stt, notifier, settings)
    reports = ReportPipeline(sessions, store, llm, notifier, settings)

    worker = Worker(queue, build_handlers(transcription, reports), poll_interval=settings.worker_poll_interval)
    return worker, llm


async def run_worker() -> int:
    settings = get_settings()
    worker, llm = build_worker(settings)

    if not await llm.check_connection():
        logger.error("OpenAI is not reachable with the configured key, refusing to start")
        return 1
    if not check_available():
        logger.warning("ffmpeg/ffprobe not found: files above %.0fMB will fail", settings.transcription_chunk_threshold_mb)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    await worker.run()
    return 0


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run_worker()))


if __name__ == "__main__":
    main()
