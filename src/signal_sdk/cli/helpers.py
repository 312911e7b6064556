"""Shared state and utilities for the signal-sdk CLI commands.

Global options (``--log-level``, ``--log-format``, ``--log-file``,
``--config``) are recorded here by the app callback and read by commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import typer
import yaml
from rich.console import Console

from signal_sdk.core.config import ClientConfig, load_config
from signal_sdk.core.logging import configure_logging, get_logger

_logger = get_logger("cli")


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    configured: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    _log_config.file = path


def configure_global_logging(console: Console) -> None:
    """Apply the global logging options once per process.

    Raises:
        typer.Exit: If the options are inconsistent (e.g. ``both`` without a file).
    """
    if _log_config.configured:
        return
    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
        _log_config.configured = True
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Allow logging to be configured again (tests)."""
    _log_config.configured = False


# =============================================================================
# Client configuration
# =============================================================================


_config_path: Path | None = None


def set_config_path(path: Path | None) -> None:
    global _config_path
    _config_path = path


def load_client_config(console: Console, account: str | None = None, **overrides: Any) -> ClientConfig:
    """Build the ClientConfig for a command.

    The ``--config`` file supplies the base; ``account`` and ``overrides``
    replace its fields.

    Raises:
        typer.Exit: If the config file cannot be read or is invalid.
    """
    try:
        config = load_config(_config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None
    updates = {k: v for k, v in overrides.items() if v is not None}
    if account:
        updates["account"] = account
    if updates:
        try:
            config = ClientConfig.model_validate({**config.model_dump(), **updates})
        except ValueError as e:
            console.print(f"[red]Invalid option:[/red] {e}")
            raise typer.Exit(1) from None
    _logger.debug("cli.config_loaded", path=str(_config_path) if _config_path else None, mode=config.daemon_mode)
    return config


__all__ = [
    "CliLoggingConfig",
    "configure_global_logging",
    "load_client_config",
    "reset_logging_state",
    "set_config_path",
    "set_log_file",
    "set_log_format",
    "set_log_level",
]
