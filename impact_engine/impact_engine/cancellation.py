"""Explicit cancellation signal threaded through every store call.

A :class:`CancellationToken` is created by the caller (HTTP handler, batch
job, CLI) and passed into the analyzer.  The traversal checks it between
BFS levels and races each store lookup against it, so an in-flight lookup
is abandoned as soon as the caller cancels or the deadline passes.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

from impact_engine.errors import AnalysisCancelledError

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline.

    Parameters
    ----------
    timeout:
        Seconds from construction after which the token counts as
        cancelled.  ``None`` means no deadline.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = asyncio.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason = "Impact analysis was cancelled"

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation.  Idempotent."""
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelledError(self._reason)
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise AnalysisCancelledError("Impact analysis deadline exceeded")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token is cancelled first.

        Raises :class:`AnalysisCancelledError` when the token fires or the
        deadline passes before *awaitable* completes; the pending work is
        cancelled in that case.
        """
        work = asyncio.ensure_future(awaitable)
        if self.cancelled:
            work.cancel()
            self.raise_if_cancelled()
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except BaseException:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        self.raise_if_cancelled()
        # asyncio.wait returned on timeout with the deadline just reached.
        raise AnalysisCancelledError("Impact analysis deadline exceeded")
