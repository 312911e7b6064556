"""Single-flight FIFO queue for outbound bot actions.

Actions are dispatched one at a time with a fixed pause between them so
the daemon is never flooded. A failed action is logged and the queue moves
on. Attachment actions schedule deletion of their temporary files after a
grace period, since signal-cli answers ``send`` before it has finished
reading the files.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any, Protocol

from signal_sdk.bot.models import (
    QueuedAction,
    SendAttachmentAction,
    SendMessageAction,
    SendReactionAction,
    describe_action,
)
from signal_sdk.core.logging import SignalLogger, get_logger
from signal_sdk.core.tasks import log_task_exception
from signal_sdk.managers.models import SendMessageOptions


class ActionDispatcher(Protocol):
    """The subset of SignalClient the queue dispatches through."""

    async def send_message(
        self,
        recipient: str,
        message: str,
        options: SendMessageOptions | None = None,
    ) -> Any: ...

    async def send_reaction(
        self,
        recipient: str,
        target_author: str,
        target_timestamp: int,
        emoji: str,
        remove: bool = False,
    ) -> Any: ...


def remove_temp_files(paths: Iterable[Path], logger: SignalLogger) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("queue.cleanup_failed", path=str(path), error=str(e))
        else:
            logger.debug("queue.temp_file_removed", path=str(path))


class ActionQueue:
    """FIFO of QueuedAction drained by at most one task.

    Args:
        dispatcher: Usually the bot's SignalClient.
        inter_action_delay: Pause after each successful dispatch.
        cleanup_delay: Grace period before attachment temp files are deleted.
        on_idle: Called each time the queue finishes draining.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        *,
        inter_action_delay: float = 0.25,
        cleanup_delay: float = 2.0,
        on_idle: Callable[[], None] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: SignalLogger | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._inter_action_delay = inter_action_delay
        self._cleanup_delay = cleanup_delay
        self._on_idle = on_idle
        self._sleep = sleep
        self._logger = logger or get_logger("bot.queue")

        self._actions: deque[QueuedAction] = deque()
        self._draining = False
        self._drain_task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._cleanup_ids = itertools.count(1)
        self._cleanups: dict[int, tuple[asyncio.TimerHandle, tuple[Path, ...]]] = {}
        self._closed = False

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def pending_cleanups(self) -> int:
        return len(self._cleanups)

    @property
    def closed(self) -> bool:
        return self._closed

    def reopen(self) -> None:
        """Accept actions again after ``close()``."""
        if self._closed:
            self._closed = False
            self._logger.debug("queue.reopened")

    def enqueue(self, action: QueuedAction) -> None:
        """Append ``action`` and start the drain task if none is running."""
        if self._closed:
            self._logger.warning("queue.closed_action_dropped", **describe_action(action))
            if isinstance(action, SendAttachmentAction):
                remove_temp_files(action.cleanup, self._logger)
            return
        self._actions.append(action)
        if self._draining:
            return
        # Guard is set before the task runs so a second enqueue cannot start another drain
        self._draining = True
        self._idle.clear()
        self._drain_task = asyncio.get_running_loop().create_task(self._drain(), name="bot-action-queue")
        self._drain_task.add_done_callback(
            lambda t: log_task_exception(t, self._logger, "queue.drain_failed")
        )

    async def wait_idle(self) -> None:
        """Wait until every queued action has been dispatched."""
        await self._idle.wait()

    async def close(self) -> None:
        """Stop draining, drop queued actions and flush pending cleanups now."""
        self._closed = True
        dropped = len(self._actions)
        for action in self._actions:
            if isinstance(action, SendAttachmentAction):
                remove_temp_files(action.cleanup, self._logger)
        self._actions.clear()

        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        for handle, paths in self._cleanups.values():
            handle.cancel()
            remove_temp_files(paths, self._logger)
        self._cleanups.clear()
        self._idle.set()
        self._logger.debug("queue.closed", dropped=dropped)

    async def _drain(self) -> None:
        self._logger.debug("queue.draining", queued=len(self._actions))
        try:
            while self._actions:
                action = self._actions.popleft()
                try:
                    await self._dispatch(action)
                except Exception as e:
                    self._logger.error("queue.action_failed", error=str(e), **describe_action(action))
                    if isinstance(action, SendAttachmentAction):
                        remove_temp_files(action.cleanup, self._logger)
                    continue
                await self._sleep(self._inter_action_delay)
        finally:
            self._draining = False
            self._drain_task = None
            self._idle.set()
            self._logger.debug("queue.idle")
        if self._on_idle is not None and not self._closed:
            self._on_idle()

    async def _dispatch(self, action: QueuedAction) -> None:
        self._logger.debug("queue.dispatching", **describe_action(action))
        if isinstance(action, SendMessageAction):
            await self._dispatcher.send_message(action.recipient, action.message)
        elif isinstance(action, SendAttachmentAction):
            options = SendMessageOptions(attachments=list(action.attachments))
            await self._dispatcher.send_message(action.recipient, action.message, options)
            if action.cleanup:
                self._schedule_cleanup(action.cleanup)
        elif isinstance(action, SendReactionAction):
            await self._dispatcher.send_reaction(
                action.recipient,
                action.target_author,
                action.target_timestamp,
                action.emoji,
            )
        else:
            raise TypeError(f"Unknown action type: {type(action).__name__}")

    def _schedule_cleanup(self, paths: tuple[Path, ...]) -> None:
        key = next(self._cleanup_ids)
        handle = asyncio.get_running_loop().call_later(self._cleanup_delay, self._run_cleanup, key)
        self._cleanups[key] = (handle, paths)

    def _run_cleanup(self, key: int) -> None:
        entry = self._cleanups.pop(key, None)
        if entry is not None:
            remove_temp_files(entry[1], self._logger)


__all__ = ["ActionDispatcher", "ActionQueue", "remove_temp_files"]
