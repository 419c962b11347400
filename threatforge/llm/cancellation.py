"""Explicit cancellation handle for a single analysis."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from threatforge.llm.errors import AnalysisCanceled

T = TypeVar("T")


class CancellationToken:
    """
    Cooperative cancellation handle passed into every suspend-capable call.

    One token belongs to one analysis. Cancelling it interrupts whatever that
    analysis is currently awaiting through ``guard()`` or ``sleep()`` and makes
    every later ``raise_if_cancelled()`` fail. Tokens share no state, so
    cancelling one never affects another analysis.

    Example:
        token = CancellationToken()
        loop.add_signal_handler(signal.SIGINT, token.cancel)
        result = await analyze_artifacts(artifacts, token)
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise AnalysisCanceled if cancellation was requested."""
        if self._event.is_set():
            raise AnalysisCanceled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await awaitable unless cancellation fires first.

        The awaitable runs as its own task; if the token is cancelled while it
        is pending, that task is cancelled (aborting e.g. an in-flight HTTP
        request) and AnalysisCanceled is raised.

        Raises:
            AnalysisCanceled: If the token is or becomes cancelled
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise AnalysisCanceled()

        work = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            watcher.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        raise AnalysisCanceled()

    async def sleep(
        self,
        seconds: float,
        sleeper: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """
        Wait for seconds, returning early with AnalysisCanceled on cancel.

        Args:
            seconds: Duration to wait
            sleeper: Sleep implementation (asyncio.sleep if None)
        """
        sleeper = sleeper or asyncio.sleep
        await self.guard(sleeper(seconds))
