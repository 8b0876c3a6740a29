"""Retry executor shared by every fetch call site.

Wraps tenacity's ``AsyncRetrying`` with the policy the fetch layer relies
on: exponential backoff starting at 500 ms, doubling, capped at 30 s;
``max_retries + 1`` total invocations (unbounded when negative); the last
error re-raised unchanged so callers can match on its type; and an
``asyncio.Event`` cancellation signal checked between attempts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, stop_never, wait_exponential
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from novelfeed.utils.logging import get_logger

_T = TypeVar("_T")

_INITIAL_DELAY = 0.5
_MAX_DELAY = 30.0

_logger: structlog.BoundLogger = get_logger(__name__)


class _stop_when_cancelled(stop_base):
    """Stop as soon as the cancellation signal has been set."""

    def __init__(self, signal: asyncio.Event) -> None:
        self._signal = signal

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self._signal.is_set()


def default_backoff() -> wait_base:
    """Return the default 0.5 s, 1 s, 2 s ... 30 s backoff strategy."""
    return wait_exponential(multiplier=_INITIAL_DELAY, max=_MAX_DELAY)


async def retry(
    operation: Callable[[asyncio.Event], Awaitable[_T]],
    max_retries: int,
    *,
    signal: asyncio.Event | None = None,
    logger: structlog.BoundLogger | None = None,
    wait: wait_base | Callable[[RetryCallState], float] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> _T:
    """Run *operation* until it succeeds or the retry budget is spent.

    Parameters
    ----------
    operation:
        Async callable receiving the cancellation signal.  Must be safe to
        run more than once.
    max_retries:
        Number of retries after the first attempt.  ``-1`` (or any
        negative value) retries until success or cancellation.
    signal:
        Optional cancellation event.  Checked after each failure; once set,
        no further attempt is scheduled and the latest error is raised.
        An attempt already in progress is never interrupted.
    logger:
        Logger for the per-retry warning.  Defaults to this module's logger.
    wait:
        Delay strategy between attempts.  Defaults to
        :func:`default_backoff`.
    sleep:
        Awaitable sleep used between attempts (injected by tests).

    Returns
    -------
    The operation's result.

    Raises
    ------
    Exception
        The last error raised by *operation*, unwrapped.
    """
    signal = signal if signal is not None else asyncio.Event()
    log = logger if logger is not None else _logger

    stop: stop_base = _stop_when_cancelled(signal)
    if max_retries >= 0:
        stop = stop | stop_after_attempt(max_retries + 1)
    else:
        stop = stop | stop_never

    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            "retry_scheduled",
            attempt=retry_state.attempt_number,
            max_retries=max_retries if max_retries >= 0 else "unbounded",
            error=repr(error),
        )

    retrying = AsyncRetrying(
        stop=stop,
        wait=wait if wait is not None else default_backoff(),
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            result = await operation(signal)
    return result
