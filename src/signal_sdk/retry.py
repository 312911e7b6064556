"""Retry with exponential backoff, timeouts, and request admission control."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from signal_sdk.core.errors import ErrorKind, RpcTimeoutError, SignalError
from signal_sdk.core.logging import get_logger

_logger = get_logger("retry")

T = TypeVar("T")

_RETRYABLE_KINDS = frozenset({ErrorKind.CONNECTION, ErrorKind.TIMEOUT})
_RETRYABLE_MARKERS = ("connection", "timeout", "econnrefused", "econnreset")


def is_retryable(error: BaseException) -> bool:
    """Default retry predicate.

    Connection and timeout failures are retried; validation, authentication,
    rate-limit and daemon-reported errors are not.
    """
    if isinstance(error, SignalError):
        return error.kind in _RETRYABLE_KINDS
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float | None,
    operation: str = "operation",
) -> T:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    Raises:
        RpcTimeoutError: When the deadline passes; the awaitable is cancelled.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as e:
        raise RpcTimeoutError(operation, timeout or 0.0) from e


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    multiplier: float = 2.0,
    timeout: float | None = None,
    retryable: Callable[[BaseException], bool] = is_retryable,
    on_retry: Callable[[int, BaseException], None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the attempt budget is spent.

    The delay before attempt ``n + 1`` is
    ``min(initial_delay * multiplier ** (n - 1), max_delay)``.

    Raises:
        The last error, unchanged, when it is not retryable or attempts
        run out.
    """
    attempt = 1
    while True:
        try:
            if timeout is not None:
                return await with_timeout(operation(), timeout)
            return await operation()
        except Exception as e:
            if attempt >= max_attempts or not retryable(e):
                raise
            delay = min(initial_delay * multiplier ** (attempt - 1), max_delay)
            _logger.info(
                "retry.scheduled",
                attempt=attempt,
                max_attempts=max_attempts,
                delay_seconds=delay,
                error=str(e),
            )
            if on_retry is not None:
                on_retry(attempt, e)
            await sleep(delay)
            attempt += 1


class RateLimiter:
    """Caps concurrent requests and spaces their start times.

    At most ``max_concurrent`` operations hold a slot at once, and two
    consecutive starts are at least ``min_interval`` seconds apart.
    """

    def __init__(
        self,
        max_concurrent: int = 5,
        min_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._spacing = asyncio.Lock()
        self._min_interval = min_interval
        self._clock = clock
        self._last_start: float | None = None
        self._active = 0

    @property
    def active(self) -> int:
        return self._active

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one admission slot for the duration of the block."""
        async with self._semaphore:
            async with self._spacing:
                if self._last_start is not None and self._min_interval > 0:
                    wait = self._last_start + self._min_interval - self._clock()
                    if wait > 0:
                        await asyncio.sleep(wait)
                self._last_start = self._clock()
            self._active += 1
            try:
                yield
            finally:
                self._active -= 1

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        async with self.slot():
            return await operation()


__all__ = ["RateLimiter", "is_retryable", "with_retry", "with_timeout"]
