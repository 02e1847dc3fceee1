# jobs/handlers.py
"""
Job handlers for each job type.

Each handler takes the claimed Job and returns a JSON-able result
stored on the job row. Raising marks the job failed or retried.
"""
from __future__ import annotations

from typing import Awaitable, Callable

from jobs.reports import ReportPipeline
from jobs.transcription import TranscriptionPipeline
from models.job import JOB_GENERATE_REPORTS, JOB_REGENERATE_REPORT, JOB_TRANSCRIBE, Job

Handler = Callable[[Job], Awaitable[dict]]


def build_handlers(
    transcription: TranscriptionPipeline,
    reports: ReportPipeline,
) -> dict[str, Handler]:
    return {
        JOB_TRANSCRIBE: transcription.run,
        JOB_GENERATE_REPORTS: reports.handle_generate,
        JOB_REGENERATE_REPORT: reports.handle_regenerate,
    }
