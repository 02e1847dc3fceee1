# api/app/dependencies.py
from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.app.config import get_settings
from db.session import get_session_factory
from jobs.queue import JobQueue
from services.report_versions import ReportVersionStore


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


async def get_session(
    factory: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> AsyncGenerator[AsyncSession, None]:
    async with factory() as session:
        yield session


def get_queue(
    factory: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> JobQueue:
    return JobQueue(factory, default_max_attempts=get_settings().worker_max_attempts)


def get_report_store(
    factory: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    queue: JobQueue = Depends(get_queue),
) -> ReportVersionStore:
    return ReportVersionStore(factory, queue, regenerate_priority=get_settings().regenerate_job_priority)
