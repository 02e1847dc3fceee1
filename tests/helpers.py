# tests/helpers.py
from __future__ import annotations

from datetime import datetime, timezone


def utc(dt: datetime) -> datetime:
    """SQLite hands datetimes back naive; they were written as UTC."""
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []

    async def publish(self, channel: str, event: str, payload: dict) -> None:
        self.events.append((channel, event, payload))

    def names(self, channel: str | None = None) -> list[str]:
        return [e for c, e, _ in self.events if channel is None or c == channel]
