# services/report_versions.py
"""
Report lifecycle: creation, versioned regeneration and approval.

Exactly one row per (session, type) has is_current_version set.
Every write that changes which row is current runs in one transaction.
"""
from __future__ import annotations

import json
import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobs.errors import MissingTranscriptError, ReportNotFoundError
from jobs.queue import JobQueue
from models.base import utcnow
from models.job import JOB_REGENERATE_REPORT, Job
from models.recording_session import RecordingSession
from models.report import REPORT_APPROVED, REPORT_DRAFT, Report

logger = logging.getLogger(__name__)

GENERATED = "ai_generated"
REGENERATED = "ai_regenerated"


def serialize_content(content: dict | str) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


def _fill_content(report: Report, content: dict | str) -> None:
    text = serialize_content(content)
    report.content = text
    report.word_count = len(text.split())
    report.character_count = len(text)


class ReportVersionStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: JobQueue,
        regenerate_priority: int = 1,
    ) -> None:
        self._sessions = session_factory
        self.queue = queue
        self.regenerate_priority = regenerate_priority

    async def _next_version(self, db: AsyncSession, session_id: uuid.UUID, report_type: str) -> int:
        stmt = select(func.max(Report.version_number)).where(
            Report.session_id == session_id,
            Report.type == report_type,
        )
        current_max = (await db.execute(stmt)).scalar()
        return (current_max or 0) + 1

    async def _retire_current(self, db: AsyncSession, session_id: uuid.UUID, report_type: str) -> None:
        await db.execute(
            update(Report)
            .where(
                Report.session_id == session_id,
                Report.type == report_type,
                Report.is_current_version.is_(True),
            )
            .values(is_current_version=False)
            .execution_options(synchronize_session=False)
        )

    async def create_report(
        self,
        session_id: uuid.UUID,
        report_type: str,
        content: dict | str,
        generation_metadata: dict,
        title: str | None = None,
        version_number: int | None = None,
        db: AsyncSession | None = None,
    ) -> Report:
        """
        Inserts a current draft. Without an explicit version_number the
        next free one is used, which is 1 for the first report of a type.
        """
        if db is None:
            async with self._sessions() as db, db.begin():
                return await self.create_report(
                    session_id, report_type, content, generation_metadata,
                    title=title, version_number=version_number, db=db,
                )

        if version_number is None:
            version_number = await self._next_version(db, session_id, report_type)

        await self._retire_current(db, session_id, report_type)

        report = Report(
            session_id=session_id,
            type=report_type,
            version_number=version_number,
            is_current_version=True,
            title=title,
            status=REPORT_DRAFT,
            generation_method=GENERATED,
            generation_metadata=generation_metadata,
        )
        _fill_content(report, content)
        db.add(report)
        await db.flush()

        logger.info("Created %s report v%d for session %s", report_type, version_number, session_id)
        return report

    async def regenerate(
        self,
        report_id: uuid.UUID,
        notes: str,
        requested_by: uuid.UUID | None = None,
    ) -> tuple[Report, Job]:
        """
        Retires the current version, inserts an empty draft at the next
        version and enqueues the job that will fill it.
        """
        async with self._sessions() as db, db.begin():
            old = await db.get(Report, report_id, with_for_update=True)
            if old is None:
                raise ReportNotFoundError(f"Report not found: {report_id}")

            session = await db.get(RecordingSession, old.session_id)
            if session is None or not (session.transcription_text or "").strip():
                raise MissingTranscriptError(
                    f"Session {old.session_id} has no transcript to regenerate from"
                )

            next_version = await self._next_version(db, old.session_id, old.type)
            await self._retire_current(db, old.session_id, old.type)

            new = Report(
                session_id=old.session_id,
                type=old.type,
                version_number=next_version,
                is_current_version=True,
                parent_version_id=old.id,
                title=old.title,
                content="",
                status=REPORT_DRAFT,
                generation_method=REGENERATED,
                generation_metadata={
                    "status": "pending",
                    "notes": notes,
                    "requested_by": str(requested_by) if requested_by else None,
                    "requested_at": utcnow().isoformat(),
                },
            )
            db.add(new)
            await db.flush()

            job = await self.queue.enqueue(
                old.session_id,
                JOB_REGENERATE_REPORT,
                payload={
                    "old_report_id": str(old.id),
                    "new_report_id": str(new.id),
                    "report_type": old.type,
                    "notes": notes,
                    "requested_by": str(requested_by) if requested_by else None,
                },
                priority=self.regenerate_priority,
                db=db,
            )

        logger.info(
            "Regeneration requested: %s report v%d -> v%d (job %s)",
            old.type,
            old.version_number,
            next_version,
            job.id,
        )
        return new, job

    async def complete_regeneration(
        self,
        report_id: uuid.UUID,
        content: dict | str,
        metadata: dict,
    ) -> Report:
        async with self._sessions() as db, db.begin():
            report = await db.get(Report, report_id, with_for_update=True)
            if report is None:
                raise ReportNotFoundError(f"Report not found: {report_id}")

            _fill_content(report, content)
            report.generation_metadata = {
                **(report.generation_metadata or {}),
                **metadata,
                "status": "completed",
            }
            await db.flush()
            return report

    async def fail_regeneration(self, report_id: uuid.UUID, error: str) -> None:
        async with self._sessions() as db, db.begin():
            report = await db.get(Report, report_id, with_for_update=True)
            if report is None:
                logger.warning("Report %s vanished before its failure could be recorded", report_id)
                return

            report.generation_metadata = {
                **(report.generation_metadata or {}),
                "status": "failed",
                "error": error,
                "failed_at": utcnow().isoformat(),
            }

    async def approve(
        self,
        report_id: uuid.UUID,
        approved_by: uuid.UUID | None = None,
        notes: str | None = None,
    ) -> Report:
        async with self._sessions() as db, db.begin():
            report = await db.get(Report, report_id, with_for_update=True)
            if report is None:
                raise ReportNotFoundError(f"Report not found: {report_id}")

            report.status = REPORT_APPROVED
            report.approved_by = approved_by
            report.approved_at = utcnow()
            report.approval_notes = notes
            await db.flush()

        logger.info("Report %s approved by %s", report_id, approved_by)
        return report

    async def get(self, report_id: uuid.UUID) -> Report | None:
        async with self._sessions() as db:
            return await db.get(Report, report_id)

    async def current_reports(self, session_id: uuid.UUID) -> list[Report]:
        async with self._sessions() as db:
            stmt = (
                select(Report)
                .where(Report.session_id == session_id, Report.is_current_version.is_(True))
                .order_by(Report.type)
            )
            return list((await db.execute(stmt)).scalars().all())

    async def versions(self, session_id: uuid.UUID, report_type: str) -> list[Report]:
        async with self._sessions() as db:
            stmt = (
                select(Report)
                .where(Report.session_id == session_id, Report.type == report_type)
                .order_by(Report.version_number.desc())
            )
            return list((await db.execute(stmt)).scalars().all())
