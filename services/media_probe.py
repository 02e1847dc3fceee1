# services/media_probe.py
"""
Thin async wrappers around ffprobe / ffmpeg.

Cuts are stream copies (-c copy): no re-encode, so a split is fast and
the chunk keeps the source container and codec.
"""
from __future__ import annotations

import asyncio
import json
import logging
import shutil
from pathlib import Path

from jobs.errors import MediaProbeError

logger = logging.getLogger(__name__)


async def _run(*args: str) -> tuple[bytes, bytes]:
    try:
        p = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise MediaProbeError(f"{args[0]} is not installed") from exc

    so, se = await p.communicate()
    if p.returncode != 0:
        raise MediaProbeError(
            f"{args[0]} exited with {p.returncode}: {(se or b'').decode(errors='replace').strip()}"
        )
    return so, se


def check_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


async def get_duration(path: str | Path) -> float:
    """Container duration in seconds, as reported by ffprobe."""
    so, _ = await _run(
        "ffprobe", "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        str(path),
    )
    try:
        info = json.loads(so.decode("utf-8") or "{}")
        duration = float(info["format"]["duration"])
    except (ValueError, KeyError, TypeError) as exc:
        raise MediaProbeError(f"Could not read duration of {Path(path).name}") from exc

    if duration <= 0:
        raise MediaProbeError(f"Non-positive duration {duration} for {Path(path).name}")
    return duration


async def split_range(
    path: str | Path,
    start: float,
    duration: float,
    out_path: str | Path,
) -> Path:
    out = Path(out_path)
    await _run(
        "ffmpeg", "-nostdin", "-hide_banner", "-loglevel", "error",
        "-i", str(path),
        "-ss", f"{start:.3f}",
        "-t", f"{duration:.3f}",
        "-c", "copy",
        "-avoid_negative_ts", "make_zero",
        "-y", str(out),
    )
    if not out.exists() or out.stat().st_size == 0:
        raise MediaProbeError(f"ffmpeg produced an empty chunk: {out.name}")
    return out
