# jobs/queue.py
from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.base import utcnow
from models.job import (
    JOB_TYPES,
    READY_STATUSES,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_RETRY,
    TERMINAL_STATUSES,
    Job,
)

logger = logging.getLogger(__name__)

# Upper bound on attempts regardless of a job's own max_attempts
HARD_ATTEMPT_CEILING = 10
STATS_WINDOW = 1000


@dataclass
class FailurePlan:
    attempts: int
    status: str
    can_retry: bool
    scheduled_at: datetime | None = None
    delay_minutes: int | None = None


def plan_failure(
    attempts: int,
    max_attempts: int,
    retryable: bool,
    now: datetime,
) -> FailurePlan:
    """
    Decide what a failed attempt turns into.
    Retries back off 1, 2, 4, ... minutes.
    """
    new_attempts = attempts + 1
    effective_max = min(max_attempts, HARD_ATTEMPT_CEILING)
    can_retry = retryable and new_attempts < effective_max

    if can_retry:
        delay = 2 ** (new_attempts - 1)
        return FailurePlan(
            attempts=new_attempts,
            status=STATUS_RETRY,
            can_retry=True,
            scheduled_at=now + timedelta(minutes=delay),
            delay_minutes=delay,
        )

    return FailurePlan(attempts=new_attempts, status=STATUS_FAILED, can_retry=False)


class JobQueue:
    """
    Durable priority queue backed by the jobs table.

    Every call runs in its own short transaction unless an open
    session is passed in, in which case the caller owns the commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_max_attempts: int = 3,
    ) -> None:
        self._sessions = session_factory
        self.default_max_attempts = default_max_attempts

    async def enqueue(
        self,
        session_id: uuid.UUID | None,
        job_type: str,
        payload: dict | None = None,
        priority: int = 0,
        max_attempts: int | None = None,
        db: AsyncSession | None = None,
    ) -> Job:
        if job_type not in JOB_TYPES:
            raise ValueError(f"Unknown job type: {job_type}")

        job = Job(
            session_id=session_id,
            job_type=job_type,
            payload=payload or {},
            priority=priority,
            max_attempts=max(1, max_attempts or self.default_max_attempts),
            status=STATUS_PENDING,
            attempts=0,
            scheduled_at=utcnow(),
        )

        if db is not None:
            db.add(job)
            await db.flush()
        else:
            async with self._sessions() as db, db.begin():
                db.add(job)
                await db.flush()

        logger.info(
            "Enqueued job %s [%s] session=%s priority=%d",
            job.id,
            job.job_type,
            session_id,
            priority,
        )
        return job

    async def dequeue_next(self) -> Job | None:
        """
        Claims the next ready job: lowest priority value first,
        then earliest scheduled_at. Rows locked by another worker
        are skipped, so at most one worker claims a given job.
        """
        now = utcnow()

        async with self._sessions() as db, db.begin():
            stmt = (
                select(Job)
                .where(
                    Job.status.in_(READY_STATUSES),
                    Job.scheduled_at <= now,
                )
                .order_by(Job.priority.asc(), Job.scheduled_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            job = (await db.execute(stmt)).scalar_one_or_none()

            if job is None:
                return None

            if not await self.mark_processing(job.id, db=db):
                return None

            await db.refresh(job)

        logger.info(
            "Claimed job %s [%s] session=%s attempt=%d/%d",
            job.id,
            job.job_type,
            job.session_id,
            job.attempts + 1,
            job.max_attempts,
        )
        return job

    async def mark_processing(self, job_id: uuid.UUID, db: AsyncSession | None = None) -> bool:
        """Conditional pending|retry -> processing. False if someone else got there first."""
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status.in_(READY_STATUSES))
            .values(status=STATUS_PROCESSING, started_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        if db is not None:
            result = await db.execute(stmt)
        else:
            async with self._sessions() as db, db.begin():
                result = await db.execute(stmt)

        return result.rowcount == 1

    async def mark_completed(self, job_id: uuid.UUID, result: dict | None = None) -> bool:
        now = utcnow()
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == STATUS_PROCESSING)
            .values(
                status=STATUS_COMPLETED,
                result=result or {},
                completed_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        async with self._sessions() as db, db.begin():
            res = await db.execute(stmt)

        if res.rowcount != 1:
            logger.warning("Job %s was not processing, completion ignored", job_id)
            return False

        logger.info("Job %s completed", job_id)
        return True

    async def mark_failed(
        self,
        job_id: uuid.UUID,
        error: str,
        retryable: bool = True,
    ) -> Job | None:
        """
        Schedules a retry with backoff or marks the job permanently failed.
        Never raises: a storage error degrades to a force-fail write, and if
        that fails too the job is left in processing for an operator.
        """
        try:
            return await self._apply_failure(job_id, error, retryable)
        except Exception as exc:
            logger.error(
                "Critical: failed to update job %s, forcing to failed status: %s",
                job_id,
                exc,
            )
            return await self._force_fail(
                job_id,
                f"Original error: {error}. Update error: {exc}",
            )

    async def _apply_failure(self, job_id: uuid.UUID, error: str, retryable: bool) -> Job | None:
        now = utcnow()

        async with self._sessions() as db, db.begin():
            job = await db.get(Job, job_id, with_for_update=True)
            if job is None:
                logger.warning("Job %s not found, cannot mark failed", job_id)
                return None

            if job.status in TERMINAL_STATUSES:
                logger.warning("Job %s is already %s, skipping mark_failed", job_id, job.status)
                return job

            plan = plan_failure(job.attempts, job.max_attempts, retryable, now)

            job.attempts = plan.attempts
            job.status = plan.status
            job.error_log = error
            if plan.can_retry:
                job.scheduled_at = plan.scheduled_at
                job.completed_at = None
            else:
                job.completed_at = now

            await db.flush()

        if plan.can_retry:
            logger.warning(
                "Job %s failed (attempt %d/%d), retry in %d min",
                job_id,
                plan.attempts,
                min(job.max_attempts, HARD_ATTEMPT_CEILING),
                plan.delay_minutes,
            )
        else:
            logger.error(
                "Job %s permanently failed after %d attempts (retryable=%s)",
                job_id,
                plan.attempts,
                retryable,
            )
        return job

    async def _force_fail(self, job_id: uuid.UUID, message: str) -> Job | None:
        try:
            async with self._sessions() as db, db.begin():
                await db.execute(
                    update(Job)
                    .where(Job.id == job_id, Job.status.not_in(TERMINAL_STATUSES))
                    .values(status=STATUS_FAILED, error_log=message, completed_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                return await db.get(Job, job_id)
        except Exception as exc:
            # Known gap: the row stays in processing until reconciled by hand
            logger.critical("Cannot update job %s at all, left in processing: %s", job_id, exc)
            return None

    async def get(self, job_id: uuid.UUID) -> Job | None:
        async with self._sessions() as db:
            return await db.get(Job, job_id)

    async def jobs_for_session(self, session_id: uuid.UUID) -> list[Job]:
        async with self._sessions() as db:
            stmt = (
                select(Job)
                .where(Job.session_id == session_id)
                .order_by(Job.created_at.desc())
            )
            return list((await db.execute(stmt)).scalars().all())

    async def stats(self) -> dict:
        """Counts by status and type over the most recent jobs."""
        async with self._sessions() as db:
            stmt = (
                select(Job.status, Job.job_type)
                .order_by(Job.created_at.desc())
                .limit(STATS_WINDOW)
            )
            rows = (await db.execute(stmt)).all()

        return {
            "by_status": dict(Counter(status for status, _ in rows)),
            "by_type": dict(Counter(job_type for _, job_type in rows)),
        }
