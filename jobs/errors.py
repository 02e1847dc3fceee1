# jobs/errors.py
"""
Failure taxonomy shared by the queue, the worker and the pipelines.

The worker retries any exception except NonRetryableJobError and its
subclasses, which fail the job immediately.
"""
from __future__ import annotations


class NonRetryableJobError(Exception):
    """Raised when input is permanently invalid and should not be retried."""
    pass


class PayloadTooLargeError(NonRetryableJobError):
    """Input exceeds the engine's hard size limit and cannot be chunked."""
    pass


class MissingTranscriptError(NonRetryableJobError):
    """A report was requested for a session that has no transcript yet."""
    pass


class AllChunksFailedError(NonRetryableJobError):
    """Every chunk of a chunked transcription failed."""
    pass


class EngineQuotaError(NonRetryableJobError):
    """The external engine rejected the call for quota or billing reasons."""
    pass


class MediaProbeError(Exception):
    """ffprobe/ffmpeg could not read or cut the media file."""
    pass


class SessionNotFoundError(NonRetryableJobError):
    pass


class ReportNotFoundError(NonRetryableJobError):
    pass


class MissingMediaError(NonRetryableJobError):
    """The session's source recording is absent or the remote store refused it."""
    pass
