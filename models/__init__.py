from models.base import Base
from models.event import Event
from models.job import Job
from models.recording_session import RecordingSession
from models.report import Report

__all__ = [
    "Base",
    "Event",
    "Job",
    "RecordingSession",
    "Report",
]
