"""Data types for the bot layer: commands, parsed messages, queued actions."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from signal_sdk.bot.bot import SignalBot


class BotEvent(str, Enum):
    """Channels the bot publishes on its own event bus."""

    READY = "ready"
    STOPPED = "stopped"
    MESSAGE = "message"
    COMMAND = "command"
    ERROR = "error"
    DAEMON_CLOSED = "daemon_closed"


@dataclass(frozen=True)
class ParsedMessage:
    """An inbound data message that passed the bot's filters."""

    id: str
    source: str
    text: str
    timestamp: int
    group_id: str | None = None
    group_name: str | None = None
    is_from_admin: bool = False

    @property
    def reply_target(self) -> str:
        """Where a reply goes: the group when the message came from one."""
        return self.group_id or self.source


CommandHandler = Callable[["ParsedMessage", list[str], "SignalBot"], Awaitable[str | None]]


@dataclass
class BotCommand:
    name: str
    description: str
    handler: CommandHandler
    admin_only: bool = False


@dataclass(frozen=True)
class CommandInvocation:
    """Payload of ``BotEvent.COMMAND``."""

    command: str
    user: str
    args: tuple[str, ...]


@dataclass
class BotStats:
    messages_received: int = 0
    commands_executed: int = 0
    start_time: float = 0.0
    last_activity: float = 0.0
    active_users: int = 0


# ---------------------------------------------------------------------------
# Queued actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SendMessageAction:
    recipient: str
    message: str


@dataclass(frozen=True)
class SendAttachmentAction:
    """Message with attachments; ``cleanup`` files are deleted after dispatch."""

    recipient: str
    message: str
    attachments: tuple[str, ...]
    cleanup: tuple[Path, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SendReactionAction:
    recipient: str
    target_author: str
    target_timestamp: int
    emoji: str


QueuedAction = SendMessageAction | SendAttachmentAction | SendReactionAction


def describe_action(action: QueuedAction) -> dict[str, Any]:
    """Log fields for one action."""
    fields: dict[str, Any] = {"action": type(action).__name__, "recipient": action.recipient}
    if isinstance(action, SendAttachmentAction):
        fields["attachment_count"] = len(action.attachments)
    return fields


__all__ = [
    "BotCommand",
    "BotEvent",
    "BotStats",
    "CommandHandler",
    "CommandInvocation",
    "ParsedMessage",
    "QueuedAction",
    "SendAttachmentAction",
    "SendMessageAction",
    "SendReactionAction",
    "describe_action",
]
