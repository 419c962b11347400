"""Reasoning-service integration layer for ThreatForge."""

from .adapter import FailingLLMAdapter, LLMAdapter, StubLLMAdapter
from .cancellation import CancellationToken
from .errors import AnalysisCanceled, LLMError, MalformedReply, TransportFailure
from .gemini_adapter import GeminiAdapter

__all__ = [
    "AnalysisCanceled",
    "CancellationToken",
    "FailingLLMAdapter",
    "GeminiAdapter",
    "LLMAdapter",
    "LLMError",
    "MalformedReply",
    "StubLLMAdapter",
    "TransportFailure",
]
