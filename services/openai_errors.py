# services/openai_errors.py
from __future__ import annotations

import openai

from jobs.errors import EngineQuotaError, NonRetryableJobError, PayloadTooLargeError


def fatal_engine_error(exc: openai.APIStatusError) -> NonRetryableJobError | None:
    """
    Map an OpenAI API error to a non-retryable job error, or None when
    the failure is transient (rate limit, 5xx) and the job should retry.
    """
    code = getattr(exc, "code", None)
    status = exc.status_code

    if code == "insufficient_quota" or status == 402:
        return EngineQuotaError(f"OpenAI quota exceeded. Please check your billing. ({exc.message})")
    if status == 413:
        return PayloadTooLargeError(f"OpenAI rejected the payload as too large: {exc.message}")
    if status in (400, 401, 403, 404, 422) and code != "rate_limit_exceeded":
        return NonRetryableJobError(f"OpenAI API Error: {exc.message}")
    return None
