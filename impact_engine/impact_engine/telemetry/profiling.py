"""Timing instrumentation for the analysis hot path.

``@profile_operation(name)`` wraps sync or async callables, measures them
with ``perf_counter_ns`` and logs the duration and outcome at DEBUG.  No
timings are retained between calls.

Usage::

    @profile_operation("impact.traverse")
    async def traverse(self, seeds):
        ...
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _log_timing(name: str, start_ns: int, outcome: str) -> None:
    duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
    logger.debug("PROFILE %s: %.3f ms (%s)", name, duration_ms, outcome)


def profile_operation(name: str) -> Callable[[F], F]:
    """Decorator that times a sync or async function under *name*.

    The outcome is ``"ok"`` or the class name of the exception raised;
    exceptions always propagate unchanged.
    """

    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start_ns = time.perf_counter_ns()
                outcome = "ok"
                try:
                    return await func(*args, **kwargs)
                except BaseException as exc:
                    outcome = type(exc).__name__
                    raise
                finally:
                    _log_timing(name, start_ns, outcome)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start_ns = time.perf_counter_ns()
            outcome = "ok"
            try:
                return func(*args, **kwargs)
            except BaseException as exc:
                outcome = type(exc).__name__
                raise
            finally:
                _log_timing(name, start_ns, outcome)

        return sync_wrapper  # type: ignore[return-value]

    return decorator
