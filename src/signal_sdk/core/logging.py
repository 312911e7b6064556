"""Structured logging infrastructure for signal-sdk.

Every entry carries the component that produced it (``client``,
``transport.process``, ``bot.queue`` ...) and a dotted snake_case event
name. Sensitive values such as PINs, captchas and safety numbers are
redacted before any handler sees them; phone numbers can be masked too.

Example usage:
    from signal_sdk.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", format="console")

    logger = get_logger("client")
    logger.info("client.connected", mode="json-rpc")

    acct_logger = logger.bind(account="+15550000000")
    acct_logger.debug("rpc.sending", method="send")
"""

from __future__ import annotations

import logging
import re
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

LogFormat = Literal["json", "console", "both"]

# Field names whose values must never reach a log sink
SENSITIVE_PATTERNS = frozenset({
    "pin",
    "captcha",
    "token",
    "secret",
    "password",
    "credential",
    "safety_number",
    "verification_code",
    "receipt",
    "challenge",
})

# Field names whose values are phone numbers and get masked when enabled
NUMBER_FIELDS = frozenset({
    "account",
    "recipient",
    "sender",
    "source",
    "number",
    "admin",
})

_E164_RE = re.compile(r"\+\d{6,15}")


def mask_number(value: str) -> str:
    """Mask every phone number inside ``value``, keeping the last two digits.

    Args:
        value: Any string that may contain E.164 numbers.

    Returns:
        The string with numbers rewritten as ``+*****42``.
    """
    return _E164_RE.sub(lambda m: "+" + "*" * (len(m.group()) - 3) + m.group()[-2:], value)


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


class _Redactor:
    """Structlog processor hiding secrets and, optionally, phone numbers.

    Nested dicts (RPC params) are redacted one level deep.
    """

    def __init__(self) -> None:
        self.mask_numbers = False

    def _redact(self, key: str, value: Any) -> Any:
        lowered = key.lower()
        if any(pattern in lowered for pattern in SENSITIVE_PATTERNS):
            return "[REDACTED]"
        if self.mask_numbers and lowered in NUMBER_FIELDS and isinstance(value, str):
            return mask_number(value)
        return value

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        return {
            key: (
                {k: self._redact(k, v) for k, v in value.items()}
                if isinstance(value, dict)
                else self._redact(key, value)
            )
            for key, value in event_dict.items()
        }


_redactor = _Redactor()


def _stamp_utc(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _shared_chain(include_timestamps: bool) -> list[Processor]:
    chain: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _redactor,
    ]
    if include_timestamps:
        chain.append(_stamp_utc)
    chain += [
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    return chain


# ---------------------------------------------------------------------------
# Logger wrapper
# ---------------------------------------------------------------------------


class SignalLogger:
    """Component-bound facade over structlog.

    The structlog logger is resolved on every call, so loggers created at
    import time follow whatever configure_logging() applied later.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._bound: dict[str, Any] = {"component": component, **initial_context}

    @classmethod
    def _with_context(cls, component: str, bound: dict[str, Any]) -> SignalLogger:
        derived = cls(component)
        derived._bound = bound
        return derived

    @property
    def component(self) -> str:
        return self._component

    @property
    def context(self) -> dict[str, Any]:
        """Copy of the bound context."""
        return dict(self._bound)

    def bind(self, **context: Any) -> SignalLogger:
        """Derive a logger with extra fields (``account``, ``method`` ...) bound."""
        return self._with_context(self._component, {**self._bound, **context})

    def unbind(self, *keys: str) -> SignalLogger:
        return self._with_context(
            self._component,
            {k: v for k, v in self._bound.items() if k not in keys},
        )

    def _emit(self, level: str, event: str, fields: dict[str, Any]) -> None:
        target = structlog.get_logger().bind(**self._bound)
        getattr(target, level)(event, **fields)

    def debug(self, event: str, **fields: Any) -> None:
        self._emit("debug", event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit("info", event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit("warning", event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit("error", event, fields)

    def critical(self, event: str, **fields: Any) -> None:
        self._emit("critical", event, fields)

    def exception(self, event: str, **fields: Any) -> None:
        """Error entry with the active exception's traceback attached."""
        self._emit("exception", event, fields)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _handler_with(handler: logging.Handler, renderer: Processor, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))
    return handler


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 3,
    include_timestamps: bool = True,
    redact_numbers: bool = False,
) -> None:
    """Route SDK logging to stderr and/or a JSON sink.

    Applications call this once; library code only calls get_logger().

    Args:
        level: Minimum level for every handler.
        format: "console" renders for humans on stderr. "json" writes one
            JSON object per line to file_path, or stdout without a file.
            "both" does console on stderr and JSON to file_path.
        file_path: JSON log file, rotated by size. Required for "both".
        max_file_size_mb: Rotation threshold.
        backup_count: Rotated files kept.
        include_timestamps: Add an ISO8601 UTC ``timestamp`` field.
        redact_numbers: Mask phone numbers in account/recipient-like fields.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    _redactor.mask_numbers = redact_numbers
    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format != "json":
        console = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        handlers.append(_handler_with(logging.StreamHandler(sys.stderr), console, log_level))

    if format != "console":
        sink: logging.Handler
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            sink = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        else:
            sink = logging.StreamHandler(sys.stdout)
        handlers.append(_handler_with(sink, structlog.processors.JSONRenderer(), log_level))

    root = logging.getLogger()
    root.setLevel(log_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        root.addHandler(handler)

    structlog.configure(
        processors=[
            *_shared_chain(include_timestamps),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Loggers resolved before configuration must not keep a stale chain
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> SignalLogger:
    """Logger for ``component`` (e.g. "client", "transport.process")."""
    return SignalLogger(component, **initial_context)


__all__ = [
    "NUMBER_FIELDS",
    "SENSITIVE_PATTERNS",
    "LogFormat",
    "SignalLogger",
    "configure_logging",
    "get_logger",
    "mask_number",
]
