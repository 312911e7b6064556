"""Rich formatting for the signal-sdk CLI."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from signal_sdk.events import (
    ClientEvent,
    ErrorEvent,
    MessageEvent,
    ReactionEvent,
    ReceiptEvent,
    TypingEvent,
)

console = Console()


class EventColors:
    CHANNEL: dict[ClientEvent, str] = {
        ClientEvent.MESSAGE: "green",
        ClientEvent.REACTION: "magenta",
        ClientEvent.RECEIPT: "dim",
        ClientEvent.TYPING: "dim",
        ClientEvent.ERROR: "red",
        ClientEvent.CLOSE: "yellow",
    }

    @classmethod
    def get(cls, channel: ClientEvent) -> str:
        return cls.CHANNEL.get(channel, "white")


def format_timestamp(millis: int | None) -> str:
    """Signal millisecond timestamp as ``HH:MM:SS`` (UTC); ``-`` when missing."""
    if not millis:
        return "-"
    return datetime.fromtimestamp(millis / 1000, tz=UTC).strftime("%H:%M:%S")


def describe_event(channel: ClientEvent, payload: Any) -> str:
    """One-line human description of an event payload."""
    if isinstance(payload, MessageEvent):
        data = payload.data_message or {}
        text = data.get("message") or ""
        group = (data.get("groupInfo") or {}).get("groupId")
        where = f" in {group}" if group else ""
        attachments = len(data.get("attachments") or [])
        suffix = f" [{attachments} attachment(s)]" if attachments else ""
        return f"{payload.source}{where}: {text}{suffix}"
    if isinstance(payload, ReactionEvent):
        verb = "removed" if payload.is_remove else "reacted"
        return f"{payload.sender} {verb} {payload.emoji} on {payload.target_timestamp}"
    if isinstance(payload, ReceiptEvent):
        return f"{payload.sender} {payload.type.lower()} receipt for {len(payload.timestamps)} message(s)"
    if isinstance(payload, TypingEvent):
        return f"{payload.sender} {payload.action.lower()} typing"
    if isinstance(payload, ErrorEvent):
        return str(payload.error)
    return str(payload)


def format_event_line(channel: ClientEvent, payload: Any) -> Text:
    timestamp = getattr(payload, "timestamp", None)
    line = Text()
    line.append(f"{format_timestamp(timestamp)} ", style="dim")
    line.append(f"{channel.value:<8}", style=EventColors.get(channel))
    line.append(" ")
    line.append(describe_event(channel, payload))
    return line


def build_send_result_table(result: dict[str, Any]) -> Table:
    table = Table(title=f"Sent (timestamp {result.get('timestamp', '-')})")
    table.add_column("Recipient")
    table.add_column("Result")
    for entry in result.get("results") or []:
        address = entry.get("recipientAddress") or {}
        recipient = address.get("number") or address.get("uuid") or "-"
        outcome = entry.get("type", "-")
        style = "green" if outcome == "SUCCESS" else "red"
        table.add_row(recipient, f"[{style}]{outcome}[/{style}]")
    return table


def link_panel(uri: str) -> Panel:
    return Panel(
        f"{uri}\n\nOpen Signal on your phone, go to Settings > Linked devices,\n"
        "and scan a QR code generated from this URI.",
        title="Device link URI",
        border_style="cyan",
    )


__all__ = [
    "EventColors",
    "build_send_result_table",
    "console",
    "describe_event",
    "format_event_line",
    "format_timestamp",
    "link_panel",
]
