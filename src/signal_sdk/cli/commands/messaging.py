"""Messaging commands: ``signal-sdk send`` and ``signal-sdk listen``."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import typer

from signal_sdk.client import SignalClient
from signal_sdk.core.errors import SignalError
from signal_sdk.events import ClientEvent
from signal_sdk.managers.models import SendMessageOptions

from ..helpers import load_client_config
from ..output import build_send_result_table, console, format_event_line

LISTEN_CHANNELS = (
    ClientEvent.MESSAGE,
    ClientEvent.REACTION,
    ClientEvent.RECEIPT,
    ClientEvent.TYPING,
    ClientEvent.ERROR,
    ClientEvent.CLOSE,
)


def send(
    account: str = typer.Argument(..., help="Account to send from (E.164 number)"),
    recipient: str = typer.Argument(..., help="Number, username, UUID or group id"),
    message: str = typer.Argument(..., help="Message text"),
    attachment: list[Path] | None = typer.Option(
        None, "--attachment", "-a", help="File to attach (repeatable)"
    ),
    mode: str | None = typer.Option(
        None, "--mode", "-m", help="Daemon mode: json-rpc, unix-socket, tcp or http"
    ),
) -> None:
    """Send one message and print the per-recipient results."""
    config = load_client_config(console, account, daemon_mode=mode)
    options = SendMessageOptions(attachments=[str(p) for p in attachment or []])

    async def _send() -> dict[str, Any]:
        client = SignalClient(config)
        await client.connect()
        try:
            return await client.send_message(recipient, message, options)
        finally:
            await client.graceful_shutdown()

    try:
        result = asyncio.run(_send())
    except SignalError as e:
        console.print(f"[red]Send failed:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(build_send_result_table(result or {}))


def listen(
    account: str = typer.Argument(..., help="Account to listen on (E.164 number)"),
    duration: float | None = typer.Option(
        None, "--duration", "-d", help="Stop after this many seconds (default: until Ctrl-C)"
    ),
    mode: str | None = typer.Option(
        None, "--mode", "-m", help="Daemon mode: json-rpc, unix-socket, tcp or http"
    ),
) -> None:
    """Print inbound messages, reactions, receipts and typing events."""
    config = load_client_config(console, account, daemon_mode=mode)
    if config.daemon_mode == "http":
        console.print("[red]The HTTP daemon mode cannot receive push events.[/red]")
        raise typer.Exit(1)

    async def _listen() -> None:
        client = SignalClient(config)
        for channel in LISTEN_CHANNELS:
            client.on(channel, lambda payload, ch=channel: console.print(format_event_line(ch, payload)))
        await client.connect()
        console.print(f"[green]Listening on {account}[/green] (Ctrl-C to stop)")
        try:
            if duration is not None:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            await client.graceful_shutdown()

    try:
        asyncio.run(_listen())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except SignalError as e:
        console.print(f"[red]Listen failed:[/red] {e}")
        raise typer.Exit(1) from None
