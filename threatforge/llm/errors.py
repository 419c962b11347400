"""Failure kinds raised by the LLM layer."""

from typing import Optional


class LLMError(Exception):
    """Exception raised when an LLM request fails."""

    def __init__(self, message: str, provider: str, status_code: Optional[int] = None):
        self.message = message
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


class AnalysisCanceled(LLMError):
    """
    The caller aborted the analysis.

    Not a failure: callers catch this to reset quietly instead of
    reporting an error.
    """

    def __init__(self, message: str = "Analysis canceled", provider: str = "caller"):
        super().__init__(message, provider=provider)


class TransportFailure(LLMError):
    """Service unreachable after retries, or a non-retryable HTTP status."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        attempts: int = 0,
    ):
        self.attempts = attempts
        super().__init__(message, provider=provider, status_code=status_code)


class MalformedReply(LLMError):
    """The service answered, but the reply violates the output contract."""

    def __init__(self, message: str, provider: str = "gemini", raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message, provider=provider)


class RetryableServiceError(LLMError):
    """Transient condition (429, 5xx, connection fault) worth another attempt."""
