"""Gemini reasoning-service adapter with retry, backoff and cancellation."""

import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from threatforge.config import Settings, settings
from threatforge.llm.adapter import LLMAdapter
from threatforge.llm.cancellation import CancellationToken
from threatforge.llm.errors import (
    AnalysisCanceled,
    MalformedReply,
    RetryableServiceError,
    TransportFailure,
)
from threatforge.models import AnalysisRequest


logger = structlog.get_logger()

PROVIDER = "gemini"


class AttemptState(str, Enum):
    """Where one exchange is in its attempt lifecycle."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRY_WAIT = "retry_wait"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass
class Exchange:
    """Bookkeeping for one logical request-response exchange."""

    state: AttemptState = AttemptState.IDLE
    attempts: int = 0
    last_status: Optional[int] = None
    history: List[AttemptState] = field(default_factory=list)

    def enter(self, state: AttemptState) -> None:
        self.state = state
        self.history.append(state)


class GeminiAdapter(LLMAdapter):
    """
    Gemini adapter with bounded exponential-backoff retry.

    Uses httpx for async HTTP requests and tenacity to drive the attempt
    loop. HTTP 429, any 5xx and transport faults are retried, waiting
    ``base * 2**n`` seconds before retry n (2s, 4s, 8s, 16s with the default
    base of one second). Any other non-success status fails immediately.
    Cancellation is checked before each attempt and interrupts both the
    in-flight request and pending backoff waits.

    Each call to generate() keeps its own Exchange, so concurrent analyses
    sharing one adapter never share attempt state.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the Gemini adapter.

        Args:
            config: Configuration object (uses global settings if None)
            client: httpx async client (creates new one if None)
            sleep: Backoff sleep implementation (asyncio.sleep if None)
        """
        self.config = config or settings
        self.api_key = self.config.gemini_api_key
        self.model = self.config.gemini_model
        self.endpoint = (
            f"{self.config.gemini_api_base.rstrip('/')}/models/{self.model}:generateContent"
        )
        self.max_attempts = self.config.llm_max_attempts
        self.backoff_base = self.config.llm_backoff_base_seconds
        self.timeout = self.config.llm_timeout_seconds
        self._sleep = sleep
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the httpx client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def timeout_ceiling(self) -> float:
        """Worst-case seconds for one exchange: all backoffs plus all call timeouts."""
        backoff_total = sum(
            self.backoff_base * 2 ** n for n in range(1, self.max_attempts)
        )
        return backoff_total + self.max_attempts * self.timeout

    async def generate(
        self,
        request: AnalysisRequest,
        cancellation: CancellationToken,
    ) -> Dict[str, Any]:
        """
        POST the request to Gemini and return the decoded success body.

        Args:
            request: Prompt plus structured-output schema
            cancellation: Handle observed before, during and between attempts

        Returns:
            The reply body as decoded JSON

        Raises:
            AnalysisCanceled: If cancellation fires at any point
            TransportFailure: On a non-retryable status or when retries run out
            MalformedReply: If the success body is not JSON
        """
        cancellation.raise_if_cancelled()

        if not self.api_key:
            raise TransportFailure(
                "Gemini API key not configured. Set GEMINI_API_KEY environment variable.",
                provider=PROVIDER,
            )

        exchange = Exchange()
        payload = request.to_payload()
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

        logger.debug(
            "gemini_request",
            model=self.model,
            prompt_length=len(request.prompt),
            max_attempts=self.max_attempts,
        )

        client = await self._get_client()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=2 * self.backoff_base, exp_base=2),
            retry=retry_if_exception_type(RetryableServiceError),
            sleep=functools.partial(self._backoff, cancellation, exchange),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    cancellation.raise_if_cancelled()
                    response = await self._send_once(
                        client, payload, headers, exchange, cancellation
                    )

        except AnalysisCanceled:
            exchange.enter(AttemptState.CANCELED)
            logger.info("gemini_request_canceled", attempts=exchange.attempts)
            raise

        except RetryableServiceError as e:
            exchange.enter(AttemptState.EXHAUSTED)
            logger.error(
                "gemini_retries_exhausted",
                attempts=exchange.attempts,
                last_status=e.status_code,
                error=e.message,
            )
            raise TransportFailure(
                f"API request failed after {exchange.attempts} attempts "
                f"(last status: {e.status_code or 'no response'})",
                provider=PROVIDER,
                status_code=e.status_code,
                attempts=exchange.attempts,
            ) from e

        except TransportFailure:
            exchange.enter(AttemptState.FAILED)
            raise

        exchange.enter(AttemptState.SUCCESS)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedReply(
                f"Reply body is not JSON: {e}", provider=PROVIDER, raw=response.text
            ) from e

        logger.debug(
            "gemini_response",
            attempts=exchange.attempts,
            status_code=response.status_code,
            tokens_used=(body.get("usageMetadata") or {}).get("totalTokenCount")
            if isinstance(body, dict)
            else None,
        )

        return body

    async def _send_once(
        self,
        client: httpx.AsyncClient,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        exchange: Exchange,
        cancellation: CancellationToken,
    ) -> httpx.Response:
        """Issue one attempt and classify its outcome."""
        exchange.attempts += 1
        exchange.enter(AttemptState.ATTEMPTING)

        try:
            response = await cancellation.guard(
                client.post(self.endpoint, json=payload, headers=headers)
            )
        except httpx.TransportError as e:
            logger.warning(
                "gemini_transport_error",
                attempt=exchange.attempts,
                error=str(e),
                type=type(e).__name__,
            )
            raise RetryableServiceError(
                f"Transport error: {e}", provider=PROVIDER
            ) from e

        status = response.status_code
        exchange.last_status = status

        if response.is_success:
            return response

        if status == 429 or status >= 500:
            logger.warning(
                "gemini_retryable_status",
                attempt=exchange.attempts,
                status_code=status,
            )
            raise RetryableServiceError(
                f"Service returned HTTP {status}", provider=PROVIDER, status_code=status
            )

        logger.error(
            "gemini_non_retryable_status",
            status_code=status,
            error=_error_detail(response),
        )
        raise TransportFailure(
            f"API request failed with status {status}",
            provider=PROVIDER,
            status_code=status,
            attempts=exchange.attempts,
        )

    async def _backoff(
        self,
        cancellation: CancellationToken,
        exchange: Exchange,
        seconds: float,
    ) -> None:
        """Cancellable wait between attempts."""
        exchange.enter(AttemptState.RETRY_WAIT)
        logger.info(
            "gemini_backoff",
            attempt=exchange.attempts,
            wait_seconds=float(seconds),
            last_status=exchange.last_status,
        )
        await cancellation.sleep(float(seconds), sleeper=self._sleep)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


def _error_detail(response: httpx.Response) -> Any:
    try:
        return response.json().get("error", response.text)
    except (ValueError, AttributeError):
        return response.text
