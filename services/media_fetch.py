# services/media_fetch.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator
from urllib.parse import urlparse

import httpx

from jobs.errors import MissingMediaError

logger = logging.getLogger(__name__)

# Client errors that can clear up on their own stay retryable
_TRANSIENT_CLIENT_STATUSES = (408, 425, 429)


def is_remote(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


@asynccontextmanager
async def local_media(
    location: str,
    work_dir: Path,
    file_name: str | None = None,
    timeout: float = 300.0,
) -> AsyncIterator[Path]:
    """
    Yields a local path for the media at `location`.

    Local paths are used in place. Remote files are streamed into
    work_dir and deleted on exit. work_dir itself belongs to the caller.
    A missing file or a 4xx from the remote store raises MissingMediaError;
    5xx and connection errors propagate as-is so the job is retried.
    """
    if not is_remote(location):
        path = Path(location)
        if not path.exists():
            raise MissingMediaError(f"Media file not found: {location}")
        yield path
        return

    name = file_name or Path(urlparse(location).path).name or "source.bin"
    target = work_dir / f"source_{name}"

    logger.info("Downloading media %s -> %s", location, target)
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            async with client.stream("GET", location) as response:
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    status = exc.response.status_code
                    if 400 <= status < 500 and status not in _TRANSIENT_CLIENT_STATUSES:
                        raise MissingMediaError(f"Media download refused ({status}): {location}") from exc
                    raise
                with target.open("wb") as f:
                    async for block in response.aiter_bytes():
                        f.write(block)

        logger.info("Downloaded %.2fMB", target.stat().st_size / (1024 * 1024))
        yield target
    finally:
        target.unlink(missing_ok=True)
