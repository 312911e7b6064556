"""Socket transports for a signal-cli daemon started with --socket or --tcp."""

from __future__ import annotations

import asyncio
from abc import abstractmethod

from signal_sdk.core.context import ClientContext
from signal_sdk.core.errors import SignalConnectionError
from signal_sdk.transport.base import STREAM_LIMIT, Transport, TransportHandlers, pump_lines


class _StreamSocketTransport(Transport):
    """Shared NDJSON framing over an asyncio stream pair."""

    def __init__(self, ctx: ClientContext, handlers: TransportHandlers) -> None:
        super().__init__(ctx, handlers)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task[None] | None = None

    @abstractmethod
    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Open the underlying stream pair."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable endpoint for log and error messages."""

    async def open(self) -> None:
        timeout = self._ctx.config.connection_timeout
        try:
            reader, writer = await asyncio.wait_for(self._connect(), timeout=timeout)
        except TimeoutError as e:
            raise SignalConnectionError(
                f"Timed out connecting to signal-cli at {self.describe()}"
            ) from e
        except OSError as e:
            raise SignalConnectionError(
                f"Cannot connect to signal-cli at {self.describe()}: {e}"
            ) from e

        self._reader, self._writer = reader, writer
        self._mark_open()
        self._read_task = asyncio.create_task(self._read_loop(), name=f"{self.name}-reader")
        self._logger.info("socket.connected", endpoint=self.describe())

    async def send(self, line: str) -> None:
        self._require_open()
        assert self._writer is not None
        try:
            self._writer.write(line.encode("utf-8"))
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            raise SignalConnectionError(f"Write to {self.describe()} failed: {e}") from e

    async def close(self, graceful: bool = True) -> None:
        writer = self._writer
        if writer is None:
            return
        self._writer = None
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError):
            pass
        if self._read_task is not None:
            await asyncio.gather(self._read_task, return_exceptions=True)
        self._report_close(None)

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            await pump_lines(self._reader, self._handlers.on_line, self._logger, "socket")
        except (ConnectionError, OSError) as e:
            self._logger.warning("socket.read_failed", endpoint=self.describe(), error=str(e))
        self._report_close(None)


class UnixSocketTransport(_StreamSocketTransport):
    """Connects to ``signal-cli daemon --socket PATH``."""

    name = "unix"

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        return await asyncio.open_unix_connection(
            str(self._ctx.config.socket_path), limit=STREAM_LIMIT
        )

    def describe(self) -> str:
        return str(self._ctx.config.socket_path)


class TcpTransport(_StreamSocketTransport):
    """Connects to ``signal-cli daemon --tcp HOST:PORT``."""

    name = "tcp"

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        config = self._ctx.config
        return await asyncio.open_connection(config.tcp_host, config.tcp_port, limit=STREAM_LIMIT)

    def describe(self) -> str:
        config = self._ctx.config
        return f"{config.tcp_host}:{config.tcp_port}"


__all__ = ["TcpTransport", "UnixSocketTransport"]
