"""Transport abstraction shared by the stdio, socket and HTTP variants.

A transport moves newline-delimited JSON between the client and one
signal-cli daemon. Streaming transports deliver every inbound line through
``handlers.on_line`` and report the end of the connection exactly once
through ``handlers.on_close``; the HTTP transport is request/response only.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from signal_sdk.core.context import ClientContext
from signal_sdk.core.errors import SignalConnectionError
from signal_sdk.core.logging import SignalLogger

if TYPE_CHECKING:
    from signal_sdk.rpc.protocol import JsonRpcRequest, JsonRpcResponse

# asyncio's default 64 KiB line limit is too small for envelopes that
# embed previews and sticker metadata
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass(frozen=True)
class DiagnosticLine:
    """A classified line from the daemon's stderr.

    Attributes:
        level: "error", "warn", "info", "debug" or "unknown".
        message: The stripped line.
        benign: True for chatter that should not surface as a warning.
    """

    level: str
    message: str
    benign: bool = False


@dataclass(frozen=True)
class TransportHandlers:
    """Callbacks a transport invokes on the event loop."""

    on_line: Callable[[str], None]
    on_close: Callable[[int | None], None]
    on_diagnostic: Callable[[DiagnosticLine], None] = lambda _line: None


class Transport(ABC):
    """A single connection to a signal-cli daemon."""

    #: False for transports that cannot push notifications
    streaming: ClassVar[bool] = True
    name: ClassVar[str] = "transport"

    def __init__(self, ctx: ClientContext, handlers: TransportHandlers) -> None:
        self._ctx = ctx
        self._handlers = handlers
        self._logger: SignalLogger = ctx.logger(f"transport.{self.name}")
        self._open = False
        self._close_reported = False

    @property
    def is_open(self) -> bool:
        return self._open

    @abstractmethod
    async def open(self) -> None:
        """Establish the connection.

        Raises:
            SignalConnectionError: If the daemon cannot be reached.
        """

    @abstractmethod
    async def send(self, line: str) -> None:
        """Write one serialized request line.

        Raises:
            SignalConnectionError: If the transport is closed or the write fails.
        """

    @abstractmethod
    async def close(self, graceful: bool = True) -> None:
        """Tear the connection down; a no-op when already closed."""

    async def request(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Single request/response exchange for non-streaming transports."""
        raise TypeError(f"{self.name} transport correlates responses asynchronously; use send()")

    def _mark_open(self) -> None:
        self._open = True
        self._close_reported = False

    def _report_close(self, code: int | None) -> None:
        """Mark closed and fire on_close, at most once per opened connection."""
        was_open = self._open
        self._open = False
        if not was_open or self._close_reported:
            return
        self._close_reported = True
        self._logger.info("transport.closed", code=code)
        self._handlers.on_close(code)

    def _require_open(self) -> None:
        if not self._open:
            raise SignalConnectionError("Not connected. Call connect() first.")


async def pump_lines(
    reader: asyncio.StreamReader,
    on_line: Callable[[str], None],
    logger: SignalLogger,
    event: str,
) -> None:
    """Read ``reader`` line by line until EOF, handing each decoded line on.

    Oversized lines are discarded with a warning; the stream keeps going.
    """
    while True:
        try:
            raw = await reader.readline()
        except ValueError:
            logger.warning(f"{event}.line_too_long", limit=STREAM_LIMIT)
            continue
        if not raw:
            return
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            continue
        try:
            on_line(line)
        except Exception:
            logger.exception(f"{event}.handler_failed")


def create_transport(ctx: ClientContext, handlers: TransportHandlers) -> Transport:
    """Build the transport selected by ``ctx.config.daemon_mode``."""
    # Imported here: the concrete modules import this one
    from signal_sdk.transport.http import HttpTransport
    from signal_sdk.transport.process import ProcessTransport
    from signal_sdk.transport.socket import TcpTransport, UnixSocketTransport

    mode = ctx.config.daemon_mode
    transports: dict[str, type[Transport]] = {
        "json-rpc": ProcessTransport,
        "unix-socket": UnixSocketTransport,
        "tcp": TcpTransport,
        "http": HttpTransport,
    }
    try:
        transport_cls = transports[mode]
    except KeyError:
        raise ValueError(f"Unknown daemon mode: {mode}") from None
    return transport_cls(ctx, handlers)


__all__ = [
    "DiagnosticLine",
    "STREAM_LIMIT",
    "Transport",
    "TransportHandlers",
    "create_transport",
    "pump_lines",
]
