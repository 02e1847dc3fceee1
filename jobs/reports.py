# jobs/reports.py
"""
Report synthesis for generate_reports and regenerate_report jobs.

Short transcripts go to the model in one call. Long ones are split into
sentence-bounded segments, summarized one by one, and the merged
summaries drive a single final synthesis call.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from ai.prompt_builder import (
    SUMMARY_FIELDS,
    ReportContext,
    build_report_prompt,
    build_segment_summary_prompt,
    build_synthesis_prompt,
    build_system_prompt,
    normalize_report_type,
)
from ai.prompts.segment_summary import SEGMENT_SUMMARY_SYSTEM
from ai.report_parsing import parse_report_json, parse_segment_summary
from api.app.config import Settings
from jobs.errors import MissingTranscriptError, NonRetryableJobError
from models.base import utcnow
from models.job import Job
from models.recording_session import SESSION_FAILED, SESSION_REPORTS_GENERATED, RecordingSession
from models.report import REPORT_TYPES
from services.notifier import ProgressNotifier, notify_session
from services.report_versions import ReportVersionStore
from services.session_records import SessionRecords
from services.transcript_chunker import split_transcript

logger = logging.getLogger(__name__)

SEGMENT_MAX_TOKENS = 800
SEGMENT_TEMPERATURE = 0.3


@dataclass
class GeneratedReport:
    content: dict
    metadata: dict = field(default_factory=dict)


def aggregate_summaries(summaries: list[dict]) -> dict:
    """Concatenates each array field across segments, in segment order."""
    aggregated: dict[str, list] = {key: [] for key in SUMMARY_FIELDS}
    aggregated["summaries"] = []

    for summary in summaries:
        for key in SUMMARY_FIELDS:
            value = summary.get(key)
            if isinstance(value, list):
                aggregated[key].extend(value)
            elif value:
                aggregated[key].append(value)
        if summary.get("summary"):
            aggregated["summaries"].append(summary["summary"])

    return aggregated


def _report_title(session: RecordingSession, report_type: str) -> str:
    label = "Adviser Report" if report_type == "adviser" else "Client Report"
    return f"{label}: {session.title}" if session.title else label


class ReportPipeline:
    def __init__(
        self,
        sessions: SessionRecords,
        store: ReportVersionStore,
        engine,
        notifier: ProgressNotifier,
        settings: Settings,
    ) -> None:
        self.sessions = sessions
        self.store = store
        self.engine = engine
        self.notifier = notifier
        self.settings = settings

    # ─────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────
    async def generate(self, transcript: str, report_type: str, ctx: ReportContext) -> GeneratedReport:
        if len(transcript) > self.settings.report_chunk_threshold_chars:
            logger.info("Large transcript (%d chars), using chunked report generation", len(transcript))
            return await self._generate_chunked(transcript, report_type, ctx)
        return await self._generate_direct(transcript, report_type, ctx)

    async def _generate_direct(self, transcript: str, report_type: str, ctx: ReportContext) -> GeneratedReport:
        t0 = time.monotonic()
        completion = await self.engine.complete(
            build_system_prompt(report_type),
            build_report_prompt(transcript, report_type, ctx),
            max_tokens=self.settings.report_max_tokens,
            temperature=self.settings.report_temperature,
        )
        content = parse_report_json(completion.text)

        return GeneratedReport(
            content=content,
            metadata={
                "model": completion.model,
                "tokens_used": completion.tokens_used,
                "processing_time_ms": int((time.monotonic() - t0) * 1000),
                "generated_at": utcnow().isoformat(),
                "chunked": False,
                "mock_mode": completion.mock,
                "is_structured": not content.get("parse_error", False),
            },
        )

    async def _generate_chunked(self, transcript: str, report_type: str, ctx: ReportContext) -> GeneratedReport:
        t0 = time.monotonic()
        segments = split_transcript(transcript, self.settings.report_segment_max_chars)
        logger.info("Split transcript into %d segments", len(segments))

        summaries: list[dict] = []
        tokens = 0
        for i, segment in enumerate(segments):
            if i > 0:
                await asyncio.sleep(self.settings.report_segment_delay_seconds)

            logger.info("Summarizing segment %d/%d", i + 1, len(segments))
            completion = await self.engine.complete(
                SEGMENT_SUMMARY_SYSTEM,
                build_segment_summary_prompt(segment),
                max_tokens=SEGMENT_MAX_TOKENS,
                temperature=SEGMENT_TEMPERATURE,
            )
            tokens += completion.tokens_used
            summaries.append(parse_segment_summary(completion.text))

        aggregated = aggregate_summaries(summaries)
        completion = await self.engine.complete(
            build_system_prompt(report_type),
            build_synthesis_prompt(aggregated, report_type, ctx),
            max_tokens=self.settings.report_max_tokens,
            temperature=self.settings.report_temperature,
        )
        tokens += completion.tokens_used
        content = parse_report_json(completion.text)

        return GeneratedReport(
            content=content,
            metadata={
                "model": completion.model,
                "tokens_used": tokens,
                "processing_time_ms": int((time.monotonic() - t0) * 1000),
                "generated_at": utcnow().isoformat(),
                "chunked": True,
                "chunks_processed": len(segments),
                "mock_mode": completion.mock,
                "is_structured": not content.get("parse_error", False),
            },
        )

    # ─────────────────────────────────────────────
    # Job handlers
    # ─────────────────────────────────────────────
    async def handle_generate(self, job: Job) -> dict:
        payload = job.payload or {}
        session = await self.sessions.get(job.session_id)

        transcript = payload.get("transcript") or session.transcription_text
        if not transcript or not transcript.strip():
            raise MissingTranscriptError(f"Session {session.id} has no transcript")

        report_types = [normalize_report_type(t) for t in payload.get("report_types") or REPORT_TYPES]
        unknown = [t for t in report_types if t not in REPORT_TYPES]
        if unknown:
            raise NonRetryableJobError(f"Unknown report type(s): {', '.join(unknown)}")

        ctx = ReportContext.from_session(session, notes=payload.get("notes"), language=payload.get("language"))

        await notify_session(self.notifier, session, "report_generation_started", {
            "report_types": report_types,
            "message": "Generating reports",
        })

        created: list[dict] = []
        try:
            for report_type in report_types:
                generated = await self.generate(transcript, report_type, ctx)
                report = await self.store.create_report(
                    session.id,
                    report_type,
                    generated.content,
                    generated.metadata,
                    title=_report_title(session, report_type),
                )
                created.append({
                    "report_id": str(report.id),
                    "report_type": report_type,
                    "version_number": report.version_number,
                })
                await notify_session(self.notifier, session, "report_generated", created[-1])

            await self.sessions.update(
                session.id,
                status=SESSION_REPORTS_GENERATED,
                processing_metadata={"reports_generated_at": utcnow().isoformat()},
            )
        except Exception as exc:
            await self._record_generation_failure(session, exc)
            raise

        await notify_session(self.notifier, session, "reports_generation_complete", {
            "reports": created,
            "message": f"Generated {len(created)} reports",
        })
        return {"reports": created}

    async def handle_regenerate(self, job: Job) -> dict:
        payload = job.payload or {}
        new_report_id = uuid.UUID(payload["new_report_id"])
        report_type = normalize_report_type(payload.get("report_type", ""))
        session = None

        try:
            session = await self.sessions.get(job.session_id)
            transcript = session.transcription_text
            if not transcript or not transcript.strip():
                raise MissingTranscriptError(f"Session {session.id} has no transcript")

            ctx = ReportContext.from_session(session, notes=payload.get("notes"))
            generated = await self.generate(transcript, report_type, ctx)
            report = await self.store.complete_regeneration(
                new_report_id,
                generated.content,
                {**generated.metadata, "regenerated_from": payload.get("old_report_id")},
            )
        except Exception as exc:
            logger.error("Regeneration of report %s failed: %s", new_report_id, exc)
            try:
                await self.store.fail_regeneration(new_report_id, str(exc))
            except Exception as record_exc:
                logger.error("Could not record regeneration failure for %s: %s", new_report_id, record_exc)
            if session is not None:
                await notify_session(self.notifier, session, "report_regeneration_error", {
                    "report_id": str(new_report_id),
                    "report_type": report_type,
                    "error": str(exc),
                })
            raise

        await notify_session(self.notifier, session, "report_regenerated", {
            "report_id": str(report.id),
            "old_report_id": payload.get("old_report_id"),
            "report_type": report_type,
            "version_number": report.version_number,
        })
        return {"report_id": str(report.id), "version_number": report.version_number}

    async def _record_generation_failure(self, session: RecordingSession, exc: Exception) -> None:
        logger.error("Report generation failed for session %s: %s", session.id, exc)
        try:
            await self.sessions.update(
                session.id,
                status=SESSION_FAILED,
                processing_metadata={
                    "report_generation_error": str(exc),
                    "report_generation_failed_at": utcnow().isoformat(),
                },
            )
        except Exception as update_exc:
            logger.error("Could not mark session %s failed: %s", session.id, update_exc)

        await notify_session(self.notifier, session, "report_generation_error", {
            "error": str(exc),
            "message": "Report generation failed",
        })
