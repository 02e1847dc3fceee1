# services/openai_stt.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import openai
from openai import AsyncOpenAI

from jobs.errors import NonRetryableJobError, PayloadTooLargeError
from services.openai_errors import fatal_engine_error

logger = logging.getLogger(__name__)

WHISPER_HARD_LIMIT_BYTES = 25 * 1024 * 1024


@dataclass
class TranscriptionResult:
    text: str
    language: str | None = None
    duration_seconds: float | None = None
    metadata: dict = field(default_factory=dict)


def _validate_audio_file(path: Path, hard_limit_bytes: int) -> int:
    if not path.exists():
        raise NonRetryableJobError(f"Audio file does not exist: {path}")

    size = path.stat().st_size
    if size < 1024:  # way too small to be real audio
        head = path.read_bytes()
        text_preview = head.decode("utf-8", errors="replace")

        raise NonRetryableJobError(
            f"Audio file too small ({size} bytes). "
            f"Likely not real audio. Preview:\n{text_preview}"
        )

    if size > hard_limit_bytes:
        raise PayloadTooLargeError(
            f"File size ({size / (1024 * 1024):.2f}MB) exceeds the "
            f"{hard_limit_bytes / (1024 * 1024):.0f}MB transcription limit."
        )

    with path.open("rb") as f:
        head = f.read(16)

    # Validate WAV container if extension says .wav
    if path.suffix.lower() == ".wav":
        if not (head.startswith(b"RIFF") and b"WAVE" in head[:16]):
            raise NonRetryableJobError(
                f"Invalid WAV container. Header={head!r}"
            )

    return size


class WhisperTranscriptionEngine:
    """Transcribes one audio file per call through the OpenAI audio API."""

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        hard_limit_bytes: int = WHISPER_HARD_LIMIT_BYTES,
        mock_mode: bool = False,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.hard_limit_bytes = hard_limit_bytes
        self.mock_mode = mock_mode
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def transcribe(
        self,
        audio_path: str | Path,
        file_name: str | None = None,
        language: str | None = None,
    ) -> TranscriptionResult:
        path = Path(audio_path)
        size = _validate_audio_file(path, self.hard_limit_bytes)
        size_mb = round(size / (1024 * 1024), 2)

        logger.info("STT: transcribing %s (%.2fMB)", path.name, size_mb)

        if self.mock_mode:
            return TranscriptionResult(
                text=f"[mock transcript of {file_name or path.name}]",
                language=language or "en",
                metadata={
                    "model": self.model,
                    "processing_time_ms": 0,
                    "file_size_mb": size_mb,
                    "transcribed_at": datetime.now(timezone.utc).isoformat(),
                    "mock_mode": True,
                },
            )

        t0 = time.monotonic()
        request: dict = {
            "model": self.model,
            "response_format": "verbose_json",
        }
        if language:
            request["language"] = language

        try:
            with path.open("rb") as f:
                response = await self.client.audio.transcriptions.create(
                    file=(file_name or path.name, f),
                    **request,
                )
        except openai.APIStatusError as exc:
            fatal = fatal_engine_error(exc)
            if fatal is not None:
                raise fatal from exc
            raise

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        text = (response.text or "").strip()
        logger.info("STT: got %d chars in %dms", len(text), elapsed_ms)

        return TranscriptionResult(
            text=text,
            language=getattr(response, "language", None),
            duration_seconds=getattr(response, "duration", None),
            metadata={
                "model": self.model,
                "processing_time_ms": elapsed_ms,
                "file_size_mb": size_mb,
                "transcribed_at": datetime.now(timezone.utc).isoformat(),
                "mock_mode": False,
            },
        )
