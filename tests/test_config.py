# tests/test_config.py
from __future__ import annotations

from api.app.config import Settings


def test_env_file_with_retired_keys_still_loads(tmp_path, monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    env = tmp_path / ".env"
    env.write_text(
        "DATABASE_URL=postgresql+asyncpg://u:p@db/meetings\n"
        "DATABASE_URL_SYNC=postgresql://u:p@db/meetings\n"
        "API_HOST=127.0.0.1\n"
        "API_PORT=9000\n"
        "TEMP_MAX_AGE_SECONDS=120\n"
    )

    settings = Settings(_env_file=str(env))

    assert settings.database_url == "postgresql+asyncpg://u:p@db/meetings"
    assert settings.temp_max_age_seconds == 120
    assert not hasattr(settings, "api_port")
    assert not hasattr(settings, "database_url_sync")


def test_defaults_and_derived_sizes(tmp_path):
    settings = Settings(_env_file=None, database_url="sqlite+aiosqlite://", temp_storage_path=str(tmp_path / "t"))

    assert settings.temp_max_age_seconds == 3600
    assert settings.transcription_chunk_threshold_bytes == 10 * 1024 * 1024
    assert settings.transcription_hard_limit_bytes == 25 * 1024 * 1024
    assert settings.transcription_target_chunk_bytes == 5 * 1024 * 1024
    assert (settings.regenerate_job_priority, settings.transcribe_job_priority, settings.report_job_priority) == (1, 5, 8)
    assert settings.temp_dir.is_dir()
