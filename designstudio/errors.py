from __future__ import annotations

from typing import Optional


class DesignError(Exception):
    """Failure in the design pipeline, carrying a user-facing message."""

    status_code = 502
    default_message = "Design generation failed."

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.detail = detail


class QuotaExceededError(DesignError):
    status_code = 429
    default_message = (
        "API quota limit reached: the Claude API limit has been reached. "
        "Please try again later or upgrade your plan."
    )


class LLMAuthError(DesignError):
    status_code = 502
    default_message = "Authentication error with Claude API. Please check your API key."


class MarkupExtractionError(DesignError):
    status_code = 502
    default_message = "Could not extract valid HTML or JSON from the Claude response."


class RenderError(DesignError):
    status_code = 500
    default_message = "The design could not be rendered to an image."


class ServiceNotConfigured(DesignError):
    status_code = 503
    default_message = "This service is not configured on the server."


_QUOTA_MARKERS = ("429", "too many requests", "rate limit", "rate_limit", "quota")
_AUTH_MARKERS = ("401", "auth")


def classify_llm_error(exc: BaseException) -> DesignError:
    """Map an arbitrary exception to a DesignError by inspecting its text."""
    if isinstance(exc, DesignError):
        return exc
    text = f"{type(exc).__name__}: {exc}"
    lowered = text.lower()
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return QuotaExceededError(detail=text)
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return LLMAuthError(detail=text)
    return DesignError(f"Design generation failed: {exc}", detail=text)
