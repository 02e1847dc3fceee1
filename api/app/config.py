# api/app/config.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application configuration.

    Loads environment variables from `.env` and provides
    typed access across API, worker, and pipelines.
    """

    # ─────────────────────────────────────────────
    # Pydantic Settings Config
    # ─────────────────────────────────────────────
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ─────────────────────────────────────────────
    # Database
    # ─────────────────────────────────────────────
    database_url: str

    # ─────────────────────────────────────────────
    # OpenAI
    # ─────────────────────────────────────────────
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_stt_model: str = "whisper-1"
    openai_mock_mode: bool = False

    # ─────────────────────────────────────────────
    # Temp Storage
    # ─────────────────────────────────────────────
    temp_storage_path: str = "/tmp/meeting-pipeline"
    media_download_timeout: float = 300.0
    temp_max_age_seconds: float = 3600.0

    # ─────────────────────────────────────────────
    # Worker / Queue
    # ─────────────────────────────────────────────
    worker_poll_interval: float = 5.0
    worker_max_attempts: int = 3
    regenerate_job_priority: int = 1
    transcribe_job_priority: int = 5
    report_job_priority: int = 8

    # ─────────────────────────────────────────────
    # Transcription
    # ─────────────────────────────────────────────
    transcription_chunk_threshold_mb: float = 10.0
    transcription_hard_limit_mb: float = 25.0
    transcription_target_chunk_mb: float = 5.0
    transcription_min_chunk_seconds: float = 60.0
    transcript_merge_batch_size: int = 10

    # ─────────────────────────────────────────────
    # Reports
    # ─────────────────────────────────────────────
    report_chunk_threshold_chars: int = 20_000
    report_segment_max_chars: int = 15_000
    report_segment_delay_seconds: float = 1.0
    report_max_tokens: int = 2000
    report_temperature: float = 0.7

    # ─────────────────────────────────────────────
    # Progress Notifier
    # ─────────────────────────────────────────────
    notifier_backend: str = "log"  # log | events

    # ─────────────────────────────────────────────
    # Derived Properties
    # ─────────────────────────────────────────────
    @property
    def temp_dir(self) -> Path:
        """
        Ensures the temp working directory exists
        and returns Path object.
        """
        p = Path(self.temp_storage_path)
        p.mkdir(parents=True, exist_ok=True)
        return p

    @property
    def transcription_chunk_threshold_bytes(self) -> int:
        return int(self.transcription_chunk_threshold_mb * 1024 * 1024)

    @property
    def transcription_hard_limit_bytes(self) -> int:
        return int(self.transcription_hard_limit_mb * 1024 * 1024)

    @property
    def transcription_target_chunk_bytes(self) -> int:
        return int(self.transcription_target_chunk_mb * 1024 * 1024)


# ─────────────────────────────────────────────
# Cached Settings Instance
# ─────────────────────────────────────────────
@lru_cache
def get_settings() -> Settings:
    """
    Returns a cached Settings instance so config
    is only loaded once per process.
    """
    return Settings()
