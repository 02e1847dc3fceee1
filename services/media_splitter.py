# services/media_splitter.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path

from services import media_probe

logger = logging.getLogger(__name__)

# Shorter final ranges are shared with the range before them
MIN_TAIL_SECONDS = 1.0


@dataclass
class AudioChunk:
    index: int
    path: Path | None
    start_time: float
    end_time: float
    size_bytes: int = 0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


def chunk_duration_for(
    duration: float,
    total_bytes: int,
    target_bytes: int,
    min_seconds: float = 60.0,
) -> float:
    """Seconds of audio that come out to roughly target_bytes, never below min_seconds."""
    if total_bytes <= 0:
        return max(duration, min_seconds)
    estimated = duration * target_bytes / total_bytes
    return max(estimated, min_seconds)


def plan_chunks(
    duration: float,
    total_bytes: int,
    target_bytes: int,
    min_seconds: float = 60.0,
) -> list[AudioChunk]:
    """
    ceil(duration / step) contiguous [start, end) ranges covering [0, duration).

    The last range takes whatever is left over. When that remainder is
    under MIN_TAIL_SECONDS the last two ranges split their combined span
    evenly, so no cut is too short to transcribe.
    """
    if duration <= 0:
        raise ValueError("duration must be positive")

    step = chunk_duration_for(duration, total_bytes, target_bytes, min_seconds)
    count = math.ceil(duration / step)

    bounds = [min(i * step, duration) for i in range(count)] + [duration]
    if count > 1 and duration - bounds[-2] < MIN_TAIL_SECONDS:
        bounds[-2] = bounds[-3] + (duration - bounds[-3]) / 2

    return [
        AudioChunk(index=i, path=None, start_time=bounds[i], end_time=bounds[i + 1])
        for i in range(count)
    ]


async def split_media(
    source: Path,
    out_dir: Path,
    total_bytes: int,
    target_bytes: int,
    min_seconds: float = 60.0,
) -> list[AudioChunk]:
    """Probe, plan and cut. Chunk files land in out_dir, which the caller owns."""
    duration = await media_probe.get_duration(source)
    chunks = plan_chunks(duration, total_bytes, target_bytes, min_seconds)

    logger.info(
        "Splitting %s (%.1fs, %.2fMB) into %d chunks of ~%.1fs",
        source.name,
        duration,
        total_bytes / (1024 * 1024),
        len(chunks),
        chunks[0].duration,
    )

    suffix = source.suffix or ".mp3"
    for chunk in chunks:
        out = out_dir / f"chunk_{chunk.index:03d}{suffix}"
        await media_probe.split_range(source, chunk.start_time, chunk.duration, out)
        chunk.path = out
        chunk.size_bytes = out.stat().st_size

    return chunks
