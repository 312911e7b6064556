"""Device commands: ``signal-sdk link`` and ``signal-sdk devices``."""

from __future__ import annotations

import asyncio
from typing import Any

import typer
from rich.table import Table

from signal_sdk.client import SignalClient
from signal_sdk.core.errors import SignalError
from signal_sdk.managers.devices import DEFAULT_DEVICE_NAME
from signal_sdk.managers.models import LinkingResult

from ..helpers import load_client_config
from ..output import console, link_panel


def link(
    name: str = typer.Option(DEFAULT_DEVICE_NAME, "--name", "-n", help="Name shown on the phone"),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Give up after this many seconds"
    ),
) -> None:
    """Link this machine to an existing account as a secondary device."""
    config = load_client_config(console)

    async def _link() -> LinkingResult:
        client = SignalClient(config)
        return await client.devices.device_link(
            name,
            on_uri=lambda uri: console.print(link_panel(uri)),
            timeout=timeout,
        )

    try:
        result = asyncio.run(_link())
    except SignalError as e:
        console.print(f"[red]Linking failed:[/red] {e}")
        raise typer.Exit(1) from None

    if not result.success:
        console.print(f"[red]Linking failed:[/red] {result.error}")
        raise typer.Exit(1)
    if result.is_linked:
        console.print(f"[green]Device '{result.device_name}' linked.[/green]")
    else:
        console.print("[yellow]signal-cli finished without confirming the link.[/yellow]")


def devices(
    account: str = typer.Argument(..., help="Account whose devices to list"),
) -> None:
    """List the devices linked to an account."""
    config = load_client_config(console, account)

    async def _list() -> list[dict[str, Any]]:
        async with SignalClient(config) as client:
            return await client.list_devices()

    try:
        entries = asyncio.run(_list())
    except SignalError as e:
        console.print(f"[red]Could not list devices:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title=f"Devices of {account}")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Last seen")
    for device in entries:
        table.add_row(
            str(device.get("id", "-")),
            device.get("name") or "-",
            str(device.get("lastSeenTimestamp") or "-"),
        )
    console.print(table)
