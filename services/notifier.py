# services/notifier.py
"""
Progress fan-out to clients watching a session.

Publishing is fire-and-forget: a notifier never raises into the
pipeline that called it. Delivery is at-most-once.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.base import utcnow
from services.observability import log_event

logger = logging.getLogger(__name__)


def session_channel(session_id: uuid.UUID | str) -> str:
    return f"session_{session_id}"


def user_channel(user_id: uuid.UUID | str) -> str:
    return f"user_{user_id}"


class ProgressNotifier(Protocol):
    async def publish(self, channel: str, event: str, payload: dict) -> None:
        ...


class LoggingNotifier:
    """Writes progress events to the process log only."""

    async def publish(self, channel: str, event: str, payload: dict) -> None:
        try:
            logger.info("notify %s %s %s", channel, event, json.dumps(payload, default=str))
        except Exception as exc:
            logger.warning("Progress event %s on %s dropped: %s", event, channel, exc)


class EventLogNotifier:
    """Persists progress events to the events table so pollers can replay them."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def publish(self, channel: str, event: str, payload: dict) -> None:
        try:
            async with self._sessions() as db, db.begin():
                await log_event(
                    db,
                    event,
                    "error" if event.endswith("_error") or event.endswith("_failed") else "info",
                    source="pipeline",
                    message=payload.get("message"),
                    metadata=json.loads(json.dumps(payload, default=str)),
                    channel=channel,
                )
        except Exception as exc:
            logger.warning("Progress event %s on %s dropped: %s", event, channel, exc)


def build_notifier(
    backend: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> ProgressNotifier:
    if backend == "events":
        if session_factory is None:
            raise ValueError("events notifier needs a session factory")
        return EventLogNotifier(session_factory)
    return LoggingNotifier()


async def notify_session(notifier: ProgressNotifier, session, event: str, payload: dict | None = None) -> None:
    """Publishes to the session's channel and, when known, to its adviser's channel."""
    body = {
        "session_id": str(session.id),
        **(payload or {}),
        "timestamp": utcnow().isoformat(),
    }
    await notifier.publish(session_channel(session.id), event, body)
    if session.adviser_id:
        await notifier.publish(user_channel(session.adviser_id), event, body)
