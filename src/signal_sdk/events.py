"""Typed event channels and the pub/sub bus that carries them.

Every asynchronous thing a SignalClient observes is published on exactly
one ClientEvent channel with a frozen payload dataclass. Subscribers may be
sync or async callables; async callbacks run as tracked background tasks so
a slow subscriber never blocks the transport reader.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from signal_sdk.core.errors import SignalError
from signal_sdk.core.logging import SignalLogger, get_logger
from signal_sdk.core.tasks import cancel_all, spawn

_MAX_CONSECUTIVE_FAILURES = 10


class ClientEvent(str, Enum):
    """Channels a SignalClient publishes on."""

    MESSAGE = "message"
    NOTIFICATION = "notification"
    REACTION = "reaction"
    RECEIPT = "receipt"
    TYPING = "typing"
    STORY = "story"
    ERROR = "error"
    LOG = "log"
    CLOSE = "close"


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotificationEvent:
    """Any daemon notification, before decomposition."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessageEvent:
    """A ``receive`` notification; ``envelope`` is the raw signal-cli envelope."""

    envelope: dict[str, Any]
    account: str | None = None

    @property
    def source(self) -> str | None:
        return _envelope_source(self.envelope)

    @property
    def timestamp(self) -> int | None:
        return self.envelope.get("timestamp")

    @property
    def data_message(self) -> dict[str, Any] | None:
        return self.envelope.get("dataMessage")


@dataclass(frozen=True)
class ReactionEvent:
    emoji: str
    sender: str | None
    target_author: str | None
    target_timestamp: int | None
    is_remove: bool
    timestamp: int | None = None
    group_id: str | None = None


@dataclass(frozen=True)
class ReceiptEvent:
    type: str
    sender: str | None
    timestamps: tuple[int, ...]
    when: int | None


@dataclass(frozen=True)
class TypingEvent:
    action: str
    sender: str | None
    group_id: str | None
    timestamp: int | None


@dataclass(frozen=True)
class StoryEvent:
    sender: str | None
    story: dict[str, Any]
    timestamp: int | None


@dataclass(frozen=True)
class ErrorEvent:
    error: SignalError


@dataclass(frozen=True)
class LogEvent:
    """A classified line from the daemon's diagnostic stream."""

    level: str
    message: str
    benign: bool = False


@dataclass(frozen=True)
class CloseEvent:
    """The transport closed. ``intentional`` is True after disconnect()."""

    code: int | None
    intentional: bool


EventPayload = (
    NotificationEvent
    | MessageEvent
    | ReactionEvent
    | ReceiptEvent
    | TypingEvent
    | StoryEvent
    | ErrorEvent
    | LogEvent
    | CloseEvent
)
EventCallback = Callable[[Any], Any]


def _envelope_source(envelope: dict[str, Any]) -> str | None:
    return envelope.get("source") or envelope.get("sourceNumber") or envelope.get("sourceUuid")


def _receipt_type(receipt: dict[str, Any]) -> str:
    if receipt.get("type"):
        return str(receipt["type"])
    if receipt.get("isRead"):
        return "READ"
    if receipt.get("isViewed"):
        return "VIEWED"
    return "DELIVERY"


def decompose_envelope(envelope: dict[str, Any]) -> list[tuple[ClientEvent, EventPayload]]:
    """Derive the typed sub-events carried by one envelope.

    Checks are independent: an envelope may produce several sub-events.
    """
    events: list[tuple[ClientEvent, EventPayload]] = []
    sender = _envelope_source(envelope)
    timestamp = envelope.get("timestamp")

    data_message = envelope.get("dataMessage") or {}
    reaction = data_message.get("reaction")
    if reaction:
        group_info = data_message.get("groupInfo") or {}
        events.append((
            ClientEvent.REACTION,
            ReactionEvent(
                emoji=reaction.get("emoji", ""),
                sender=sender,
                target_author=reaction.get("targetAuthor") or reaction.get("targetAuthorNumber"),
                target_timestamp=reaction.get("targetSentTimestamp"),
                is_remove=bool(reaction.get("isRemove", False)),
                timestamp=timestamp,
                group_id=group_info.get("groupId"),
            ),
        ))

    receipt = envelope.get("receiptMessage")
    if receipt:
        events.append((
            ClientEvent.RECEIPT,
            ReceiptEvent(
                type=_receipt_type(receipt),
                sender=sender,
                timestamps=tuple(receipt.get("timestamps") or ()),
                when=receipt.get("when"),
            ),
        ))

    typing = envelope.get("typingMessage")
    if typing:
        events.append((
            ClientEvent.TYPING,
            TypingEvent(
                action=typing.get("action", ""),
                sender=sender,
                group_id=typing.get("groupId"),
                timestamp=typing.get("timestamp", timestamp),
            ),
        ))

    story = envelope.get("storyMessage")
    if story:
        events.append((
            ClientEvent.STORY,
            StoryEvent(sender=sender, story=story, timestamp=timestamp),
        ))

    return events


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------


class EventBus:
    """Channel-keyed pub/sub with sync and async subscribers.

    Usage::

        bus = EventBus()
        sub_id = bus.subscribe(ClientEvent.MESSAGE, on_message)
        bus.emit(ClientEvent.MESSAGE, MessageEvent(envelope=...))
        bus.unsubscribe(sub_id)
        await bus.aclose()

    A subscriber that raises ten times in a row is disabled. Channels are
    plain hashables, so the bot layer reuses this class with its own enum.
    """

    def __init__(self, logger: SignalLogger | None = None) -> None:
        self._logger = logger or get_logger("events")
        self._subscribers: dict[str, _Subscriber] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, channel: Any, callback: EventCallback) -> str:
        """Register ``callback`` for ``channel``.

        Returns:
            Subscription ID for later unsubscribe.
        """
        sub_id = str(uuid.uuid4())
        self._subscribers[sub_id] = _Subscriber(channel, callback)
        self._logger.debug("event_bus.subscribed", sub_id=sub_id, channel=str(channel))
        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        """Remove a subscriber.

        Returns:
            True if the subscriber existed and was removed.
        """
        return self._subscribers.pop(sub_id, None) is not None

    def subscriber_count(self, channel: Any | None = None) -> int:
        if channel is None:
            return len(self._subscribers)
        return sum(1 for s in self._subscribers.values() if s.channel == channel)

    def emit(self, channel: Any, payload: Any) -> int:
        """Deliver ``payload`` to every subscriber of ``channel``.

        Returns:
            Number of subscribers the payload was delivered to.
        """
        delivered = 0
        for sub_id, sub in list(self._subscribers.items()):
            if sub.channel != channel or sub.consecutive_failures >= _MAX_CONSECUTIVE_FAILURES:
                continue
            delivered += 1
            try:
                result = sub.callback(payload)
            except Exception:
                self._record_failure(sub_id, sub, channel)
                continue
            if asyncio.iscoroutine(result):
                spawn(
                    self._await_callback(sub_id, sub, channel, result),
                    name=f"event-{channel}",
                    tracked=self._tasks,
                    logger=self._logger,
                    event="event_bus.callback_task_failed",
                )
            else:
                sub.consecutive_failures = 0
        return delivered

    async def wait_for(self, channel: Any, timeout: float | None = None) -> Any:
        """Wait for the next payload on ``channel``."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def _resolve(payload: Any) -> None:
            if not future.done():
                future.set_result(payload)

        sub_id = self.subscribe(channel, _resolve)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            self.unsubscribe(sub_id)

    async def drain(self) -> None:
        """Wait until every in-flight async callback has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel in-flight async callbacks and drop all subscribers."""
        await cancel_all(self._tasks)
        self._subscribers.clear()

    async def _await_callback(self, sub_id: str, sub: _Subscriber, channel: Any, coro: Any) -> None:
        try:
            await coro
        except Exception:
            self._record_failure(sub_id, sub, channel)
        else:
            sub.consecutive_failures = 0

    def _record_failure(self, sub_id: str, sub: _Subscriber, channel: Any) -> None:
        sub.consecutive_failures += 1
        self._logger.warning(
            "event_bus.subscriber_error",
            subscriber_id=sub_id,
            channel=str(channel),
            consecutive_failures=sub.consecutive_failures,
            exc_info=True,
        )
        if sub.consecutive_failures >= _MAX_CONSECUTIVE_FAILURES:
            self._logger.error(
                "event_bus.subscriber_disabled",
                subscriber_id=sub_id,
                reason=f"{_MAX_CONSECUTIVE_FAILURES} consecutive failures",
            )


class _Subscriber:
    """Internal subscriber state."""

    __slots__ = ("channel", "callback", "consecutive_failures")

    def __init__(self, channel: Any, callback: EventCallback) -> None:
        self.channel = channel
        self.callback = callback
        self.consecutive_failures: int = 0


__all__ = [
    "ClientEvent",
    "CloseEvent",
    "ErrorEvent",
    "EventBus",
    "EventCallback",
    "EventPayload",
    "LogEvent",
    "MessageEvent",
    "NotificationEvent",
    "ReactionEvent",
    "ReceiptEvent",
    "StoryEvent",
    "TypingEvent",
    "decompose_envelope",
]
