"""LLM adapter abstract interface and stub implementations for testing."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from threatforge.llm.cancellation import CancellationToken
from threatforge.llm.errors import (
    AnalysisCanceled,
    LLMError,
    MalformedReply,
    RetryableServiceError,
    TransportFailure,
)
from threatforge.models import AnalysisRequest


class LLMAdapter(ABC):
    """
    Abstract base class for reasoning-service adapters.

    An adapter performs one logical request-response exchange and returns
    the raw reply body. Interpreting that body is the response parser's job,
    so adapters stay swappable and easy to stub.
    """

    @abstractmethod
    async def generate(
        self,
        request: AnalysisRequest,
        cancellation: CancellationToken,
    ) -> Dict[str, Any]:
        """
        Send the request and return the decoded success body.

        Args:
            request: Prompt plus structured-output schema
            cancellation: Handle observed at every suspension point

        Returns:
            The reply body as decoded JSON

        Raises:
            AnalysisCanceled: If cancellation fires at any point
            TransportFailure: If the service cannot produce a success reply
        """

    async def close(self) -> None:
        """Release any resources held by the adapter."""


Reply = Union[Dict[str, Any], Exception]


class StubLLMAdapter(LLMAdapter):
    """
    Stub adapter for testing.

    Plays back a script of replies, one per call. Each entry is either a
    reply body (returned) or an exception instance (raised). The last entry
    repeats once the script runs out. Never makes real API calls.

    Example:
        stub = StubLLMAdapter([gemini_body({"assets": ["A", "B"], "threats": []})])
        result = await analyze_artifacts(artifacts, llm_adapter=stub)
    """

    def __init__(self, replies: Sequence[Reply], latency_seconds: float = 0.0):
        """
        Initialize the stub adapter.

        Args:
            replies: Reply bodies or exceptions, returned/raised in order
            latency_seconds: Simulated network latency (cancellable)
        """
        if not replies:
            raise ValueError("StubLLMAdapter needs at least one reply")
        self.replies = list(replies)
        self.latency_seconds = latency_seconds
        self.call_count = 0
        self.call_history: List[AnalysisRequest] = []

    async def generate(
        self,
        request: AnalysisRequest,
        cancellation: CancellationToken,
    ) -> Dict[str, Any]:
        cancellation.raise_if_cancelled()

        self.call_count += 1
        self.call_history.append(request)

        if self.latency_seconds > 0:
            await cancellation.sleep(self.latency_seconds)

        reply = self.replies[min(self.call_count, len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def reset(self) -> None:
        """Reset call counters and history."""
        self.call_count = 0
        self.call_history.clear()

    def get_last_call(self) -> Optional[AnalysisRequest]:
        """Get the most recent request passed to generate()."""
        if self.call_history:
            return self.call_history[-1]
        return None


class FailingLLMAdapter(LLMAdapter):
    """
    Adapter that always fails.

    Useful for testing error handling in the orchestrator and surfaces.
    """

    def __init__(
        self,
        error_message: str = "Simulated LLM failure",
        status_code: Optional[int] = 503,
    ):
        self.error_message = error_message
        self.status_code = status_code
        self.call_count = 0

    async def generate(
        self,
        request: AnalysisRequest,
        cancellation: CancellationToken,
    ) -> Dict[str, Any]:
        """Always raise TransportFailure."""
        cancellation.raise_if_cancelled()
        self.call_count += 1
        await asyncio.sleep(0)
        raise TransportFailure(
            self.error_message,
            provider="failing_stub",
            status_code=self.status_code,
            attempts=1,
        )


__all__ = [
    "AnalysisCanceled",
    "FailingLLMAdapter",
    "LLMAdapter",
    "LLMError",
    "MalformedReply",
    "RetryableServiceError",
    "StubLLMAdapter",
    "TransportFailure",
]
