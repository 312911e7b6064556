"""Bot framework: commands, cooldowns and a single-flight action queue."""

from signal_sdk.bot.bot import SignalBot, format_uptime, truncate_message
from signal_sdk.bot.cooldown import CooldownLedger
from signal_sdk.bot.models import (
    BotCommand,
    BotEvent,
    BotStats,
    CommandInvocation,
    ParsedMessage,
    QueuedAction,
    SendAttachmentAction,
    SendMessageAction,
    SendReactionAction,
)
from signal_sdk.bot.queue import ActionQueue

__all__ = [
    "ActionQueue",
    "BotCommand",
    "BotEvent",
    "BotStats",
    "CommandInvocation",
    "CooldownLedger",
    "ParsedMessage",
    "QueuedAction",
    "SendAttachmentAction",
    "SendMessageAction",
    "SendReactionAction",
    "SignalBot",
    "format_uptime",
    "truncate_message",
]
