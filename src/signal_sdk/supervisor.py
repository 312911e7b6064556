"""Reconnection supervisor with bounded exponential backoff.

Reacts to unexpected transport closes by scheduling reconnect attempts
after ``base_delay * 2 ** (attempt - 1)`` seconds, up to ``max_attempts``.
An intentional shutdown never triggers a reconnect. Once the budget is
spent the owner is told through ``on_exhausted`` and the supervisor stays
quiet until ``reset()``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from signal_sdk.core.logging import SignalLogger, get_logger
from signal_sdk.core.tasks import log_task_exception

SleepFn = Callable[[float], Awaitable[Any]]


class ReconnectSupervisor:
    """Schedules reconnect attempts for one client.

    Usage::

        supervisor = ReconnectSupervisor(client._reconnect, max_attempts=5)
        supervisor.handle_close(intentional=False)   # -> 1.0, task scheduled
        supervisor.reset()                           # after a successful connect
        supervisor.cancel()                          # on shutdown
    """

    def __init__(
        self,
        reconnect: Callable[[], Awaitable[None]],
        *,
        enabled: bool = True,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        sleep: SleepFn = asyncio.sleep,
        on_exhausted: Callable[[int], None] | None = None,
        logger: SignalLogger | None = None,
    ) -> None:
        self._reconnect = reconnect
        self._enabled = enabled
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep
        self._on_exhausted = on_exhausted
        self._logger = logger or get_logger("supervisor")
        self._attempts = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def pending(self) -> bool:
        """True while a reconnect attempt is waiting or running."""
        return self._task is not None and not self._task.done()

    @property
    def exhausted(self) -> bool:
        return self._attempts >= self._max_attempts

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the ``attempt``-th reconnect (1-based)."""
        return self._base_delay * 2 ** (attempt - 1)

    def handle_close(self, intentional: bool) -> float | None:
        """React to a transport close.

        Returns:
            The delay of the newly scheduled attempt, or None when nothing
            was scheduled (intentional close, disabled, already pending, or
            attempts exhausted).
        """
        if intentional:
            self._logger.info("reconnect.skipped", reason="intentional_shutdown")
            return None
        if not self._enabled:
            self._logger.info("reconnect.skipped", reason="auto_reconnect_disabled")
            return None
        if self.pending:
            return None
        if self.exhausted:
            self._logger.error(
                "reconnect.exhausted",
                attempts=self._attempts,
                max_attempts=self._max_attempts,
            )
            if self._on_exhausted is not None:
                self._on_exhausted(self._attempts)
            return None

        self._attempts += 1
        delay = self.backoff_delay(self._attempts)
        self._logger.warning(
            "reconnect.scheduled",
            attempt=self._attempts,
            max_attempts=self._max_attempts,
            delay_seconds=delay,
        )
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._attempts, delay), name=f"reconnect-{self._attempts}"
        )
        self._task.add_done_callback(
            lambda t: log_task_exception(t, self._logger, "reconnect.task_failed")
        )
        return delay

    def reset(self) -> None:
        """Forget past attempts after a successful connection."""
        if self._attempts:
            self._logger.info("reconnect.reset", attempts=self._attempts)
        self._attempts = 0

    def cancel(self) -> None:
        """Cancel a scheduled or running attempt."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self._logger.debug("reconnect.cancelled")
        self._task = None

    async def _run(self, attempt: int, delay: float) -> None:
        await self._sleep(delay)
        self._logger.info("reconnect.attempting", attempt=attempt)
        try:
            await self._reconnect()
        except Exception as e:
            self._logger.warning("reconnect.attempt_failed", attempt=attempt, error=str(e))
            # This task is finishing; clear it so the next attempt can be scheduled
            self._task = None
            self.handle_close(intentional=False)
            return
        self._logger.info("reconnect.succeeded", attempt=attempt)


__all__ = ["ReconnectSupervisor"]
