# tests/conftest.py
from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio

from api.app.config import Settings
from db.engine import build_engine
from db.session import build_session_factory
from models import Base
from models.recording_session import RecordingSession
from tests.helpers import RecordingNotifier


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        temp_storage_path=str(tmp_path / "work"),
        report_segment_delay_seconds=0,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_session(session_factory):
    async def _make(**fields) -> RecordingSession:
        fields.setdefault("title", "Quarterly planning")
        fields.setdefault("file_name", "meeting.mp3")
        async with session_factory() as db, db.begin():
            row = RecordingSession(**fields)
            db.add(row)
            await db.flush()
        return row

    return _make
