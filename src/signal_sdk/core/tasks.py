"""Helpers for background asyncio.Task lifecycle.

Every background task the SDK starts (reader loops, reconnect timers, queue
drains, async event callbacks) goes through ``spawn`` so exceptions are
logged instead of silently lost and the owner can cancel what is left on
shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from signal_sdk.core.logging import SignalLogger


def log_task_exception(
    task: asyncio.Task[Any],
    logger: SignalLogger,
    event: str,
    *,
    level: str = "error",
) -> BaseException | None:
    """Extract and log an exception from a completed task.

    Returns:
        The exception if one was found, ``None`` if the task completed
        normally or was cancelled.
    """
    if task.cancelled():
        return None
    exc = task.exception()
    if exc is not None:
        log_fn = getattr(logger, level, logger.error)
        log_fn(event, error=str(exc), error_type=type(exc).__name__, task_name=task.get_name())
    return exc


def spawn(
    coro: Coroutine[Any, Any, Any],
    *,
    name: str,
    tracked: set[asyncio.Task[Any]],
    logger: SignalLogger,
    event: str,
) -> asyncio.Task[Any]:
    """Create a task, keep a strong reference in ``tracked`` until it finishes."""
    task = asyncio.get_running_loop().create_task(coro, name=name)
    tracked.add(task)

    def _done(t: asyncio.Task[Any]) -> None:
        tracked.discard(t)
        log_task_exception(t, logger, event)

    task.add_done_callback(_done)
    return task


async def cancel_all(tracked: set[asyncio.Task[Any]]) -> None:
    """Cancel every task in ``tracked`` and wait for them to finish."""
    current = asyncio.current_task()
    tasks = [t for t in tracked if t is not current and not t.done()]
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["cancel_all", "log_task_exception", "spawn"]
