"""signal-sdk command-line tool.

Thin Typer commands over SignalClient: link a device, list devices, send a
message, and print inbound events.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from signal_sdk import __version__
from signal_sdk.client import SignalClient
from signal_sdk.core.errors import SignalError

from . import helpers as helpers
from .commands import devices, link, listen, send
from .helpers import (
    configure_global_logging,
    load_client_config,
    set_config_path,
    set_log_file,
    set_log_format,
    set_log_level,
)
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="signal-sdk",
    help="Drive a signal-cli daemon from the command line",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    if value:
        console.print(f"signal-sdk v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def config_callback(value: Path | None) -> Path | None:
    set_config_path(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="SIGNAL_SDK_LOG_LEVEL",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="SIGNAL_SDK_LOG_FORMAT",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="SIGNAL_SDK_LOG_FILE",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            callback=config_callback,
            help="YAML file with client settings",
            envvar="SIGNAL_SDK_CONFIG",
        ),
    ] = None,
) -> None:
    """signal-sdk - talk to signal-cli over JSON-RPC."""
    configure_global_logging(console)


@app.command()
def version(
    account: str | None = typer.Option(
        None, "--account", "-a", help="Also query the signal-cli version through this account"
    ),
) -> None:
    """Show the SDK version (and signal-cli's, with --account)."""
    console.print(f"signal-sdk v{__version__}")
    if account is None:
        return
    config = load_client_config(console, account)

    async def _daemon_version() -> dict[str, object]:
        async with SignalClient(config) as client:
            return await client.get_version()

    try:
        info = asyncio.run(_daemon_version())
    except SignalError as e:
        console.print(f"[red]Could not query signal-cli:[/red] {e}")
        raise typer.Exit(1) from None
    console.print(f"signal-cli {info.get('version', 'unknown')}")


app.command()(send)
app.command()(listen)
app.command()(link)
app.command()(devices)


__all__ = ["app", "console", "helpers", "main"]
