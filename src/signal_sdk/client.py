"""SignalClient: one supervised connection to a signal-cli daemon.

The client owns the transport, the pending-call registry, the router that
feeds it, and the reconnect supervisor. Everything runs on one event loop;
the registry is only mutated from loop callbacks and from ``call``.

Usage::

    async with SignalClient(ClientConfig(account="+15550000000")) as client:
        client.on(ClientEvent.MESSAGE, handle_message)
        await client.send_message("+15551111111", "hi")
"""

from __future__ import annotations

import asyncio
import uuid
from enum import Enum
from typing import Any

from signal_sdk.core.config import ClientConfig
from signal_sdk.core.context import ClientContext
from signal_sdk.core.errors import ParseError, RpcTimeoutError, SignalConnectionError, SignalError
from signal_sdk.events import (
    ClientEvent,
    CloseEvent,
    ErrorEvent,
    EventBus,
    EventCallback,
    LogEvent,
)
from signal_sdk.managers import (
    AccountManager,
    ContactManager,
    DeviceManager,
    GroupManager,
    MessageManager,
    SendMessageOptions,
    StickerManager,
)
from signal_sdk.retry import RateLimiter, with_retry
from signal_sdk.rpc.correlation import PendingCallRegistry
from signal_sdk.rpc.errors import rpc_error_to_exception
from signal_sdk.rpc.protocol import JsonRpcRequest
from signal_sdk.rpc.router import NotificationRouter
from signal_sdk.supervisor import ReconnectSupervisor
from signal_sdk.transport.base import (
    DiagnosticLine,
    Transport,
    TransportHandlers,
    create_transport,
)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SHUTTING_DOWN = "shutting_down"


class SignalClient:
    """Typed JSON-RPC client for signal-cli.

    Args:
        config: Client configuration; defaults to ``ClientConfig()``.
        transport_factory: Builds the transport for each (re)connect.
            Tests pass a factory returning an in-memory fake.
        bus: Event bus to publish on; a private one is created otherwise.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport_factory: Any = create_transport,
        bus: EventBus | None = None,
    ) -> None:
        self._ctx = ClientContext.create(config)
        self._logger = self._ctx.logger("client")
        self._transport_factory = transport_factory
        self._transport: Transport | None = None
        # Bumped per transport so a late close from a replaced transport is ignored
        self._generation = 0
        self._state = ConnectionState.DISCONNECTED
        self._intentional_shutdown = False

        self._bus = bus or EventBus(logger=self._ctx.logger("events"))
        self._registry = PendingCallRegistry(logger=self._ctx.logger("rpc.correlation"))
        self._router = NotificationRouter(
            self._registry,
            self._bus,
            account=self.config.account,
            logger=self._ctx.logger("rpc.router"),
        )
        self._supervisor = ReconnectSupervisor(
            self._reconnect,
            enabled=self.config.auto_reconnect,
            max_attempts=self.config.max_reconnect_attempts,
            base_delay=self.config.reconnect_base_delay,
            on_exhausted=self._on_reconnect_exhausted,
            logger=self._ctx.logger("supervisor"),
        )
        self._limiter = RateLimiter(
            max_concurrent=self.config.max_concurrent_requests,
            min_interval=self.config.min_request_interval,
        )

        self.messages = MessageManager(self._ctx, self.call)
        self.groups = GroupManager(self._ctx, self.call)
        self.contacts = ContactManager(self._ctx, self.call)
        self.devices = DeviceManager(self._ctx, self.call)
        self.accounts = AccountManager(self._ctx, self.call)
        self.stickers = StickerManager(self._ctx, self.call)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ClientConfig:
        return self._ctx.config

    @property
    def context(self) -> ClientContext:
        return self._ctx

    @property
    def account(self) -> str | None:
        return self.config.account

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return (
            self._state is ConnectionState.CONNECTED
            and self._transport is not None
            and self._transport.is_open
        )

    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def pending_calls(self) -> int:
        return len(self._registry)

    @property
    def reconnect_attempts(self) -> int:
        return self._supervisor.attempts

    def on(self, channel: ClientEvent, callback: EventCallback) -> str:
        """Subscribe ``callback`` to ``channel``; returns the subscription id."""
        return self._bus.subscribe(channel, callback)

    def off(self, sub_id: str) -> bool:
        return self._bus.unsubscribe(sub_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the transport.

        With ``enable_retry`` the initial connection is retried on
        connection and timeout errors (``max_retries`` attempts,
        exponential backoff from ``retry_delay``).

        Raises:
            SignalConnectionError: If the daemon cannot be reached.
        """
        if self.is_connected:
            return
        self._intentional_shutdown = False
        # A manual connect replaces any reconnect the supervisor has scheduled
        self._supervisor.cancel()
        if self.config.enable_retry:
            await with_retry(
                self._open_transport,
                max_attempts=self.config.max_retries,
                initial_delay=self.config.retry_delay,
            )
        else:
            await self._open_transport()

    async def disconnect(self) -> None:
        """Close the connection immediately. Never triggers a reconnect."""
        await self._shutdown(graceful=False)

    async def graceful_shutdown(self) -> None:
        """Terminate the daemon, wait for it within the grace window, then kill."""
        await self._shutdown(graceful=True)

    async def close(self) -> None:
        """Disconnect and release the event bus."""
        await self.disconnect()
        await self._bus.aclose()

    async def __aenter__(self) -> SignalClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.graceful_shutdown()

    async def _open_transport(self) -> None:
        self._state = ConnectionState.CONNECTING
        self._generation += 1
        generation = self._generation
        # Bumping the generation first turns the old transport's close report stale
        previous, self._transport = self._transport, None
        if previous is not None:
            self._logger.warning("client.replacing_transport")
            await self._discard_transport(previous)
            self._registry.fail_all(SignalConnectionError("Connection replaced"))

        handlers = TransportHandlers(
            on_line=self._router.route_line,
            on_close=lambda code: self._on_close(generation, code),
            on_diagnostic=self._on_diagnostic,
        )
        transport: Transport = self._transport_factory(self._ctx, handlers)
        self._logger.info("client.connecting", mode=self.config.daemon_mode)
        try:
            await transport.open()
        except BaseException:
            # Covers cancellation too: a half-opened transport may own a child process
            self._state = ConnectionState.DISCONNECTED
            await self._discard_transport(transport)
            raise
        self._transport = transport
        self._state = ConnectionState.CONNECTED
        self._supervisor.reset()
        self._logger.info("client.connected", mode=self.config.daemon_mode)

    async def _discard_transport(self, transport: Transport) -> None:
        try:
            await transport.close(graceful=False)
        except Exception as e:
            self._logger.warning("client.transport_cleanup_failed", error=str(e))

    async def _reconnect(self) -> None:
        if self._intentional_shutdown or self.is_connected:
            return
        await self._open_transport()

    async def _shutdown(self, *, graceful: bool) -> None:
        self._intentional_shutdown = True
        self._supervisor.cancel()
        transport = self._transport
        if transport is None:
            self._state = ConnectionState.DISCONNECTED
            return
        self._state = ConnectionState.SHUTTING_DOWN
        self._logger.info("client.shutting_down", graceful=graceful)
        try:
            await transport.close(graceful=graceful)
        finally:
            # Transports that never reported a close still must not leave callers waiting
            self._transport = None
            self._registry.fail_all(SignalConnectionError("Client disconnected"))
            self._state = ConnectionState.DISCONNECTED
        self._logger.info("client.disconnected")

    # -------------------------------------------------------------------------
    # Transport callbacks
    # -------------------------------------------------------------------------

    def _on_close(self, generation: int, code: int | None) -> None:
        if generation != self._generation:
            return
        was_connected = self._state is ConnectionState.CONNECTED
        intentional = self._intentional_shutdown
        self._transport = None
        if self._state is not ConnectionState.SHUTTING_DOWN:
            self._state = ConnectionState.DISCONNECTED
        self._registry.fail_all(SignalConnectionError("Connection to signal-cli closed"))

        if intentional:
            self._logger.info("client.closed", code=code, intentional=True)
        else:
            self._logger.warning("client.connection_lost", code=code)
        self._bus.emit(ClientEvent.CLOSE, CloseEvent(code=code, intentional=intentional))
        if was_connected:
            self._supervisor.handle_close(intentional)

    def _on_diagnostic(self, line: DiagnosticLine) -> None:
        if line.level == "error":
            self._logger.error("daemon.stderr_error", message=line.message)
            self._bus.emit(
                ClientEvent.ERROR,
                ErrorEvent(SignalError(f"signal-cli error: {line.message}")),
            )
            return
        if not line.benign:
            self._logger.warning("daemon.stderr", level=line.level, message=line.message)
        self._bus.emit(ClientEvent.LOG, LogEvent(level=line.level, message=line.message, benign=line.benign))

    def _on_reconnect_exhausted(self, attempts: int) -> None:
        self._bus.emit(
            ClientEvent.ERROR,
            ErrorEvent(SignalConnectionError(
                f"Max reconnection attempts ({attempts}) reached. Manual intervention required."
            )),
        )

    # -------------------------------------------------------------------------
    # RPC
    # -------------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        transport = self._transport
        if transport is None or not transport.is_open or self._state is not ConnectionState.CONNECTED:
            raise SignalConnectionError()
        return transport

    async def call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send one request and wait for its result.

        Raises:
            SignalConnectionError: Not connected, or the connection closed
                while the call was in flight.
            RpcTimeoutError: No response within ``request_timeout``.
            RpcError: The daemon answered with an error object.
            RateLimitError: The daemon reported throttling.
        """
        self._require_transport()
        async with self._limiter.slot():
            transport = self._require_transport()
            if not transport.streaming:
                return await self._request_once(transport, method, params)
            return await self._request_streamed(transport, method, params)

    async def _request_once(self, transport: Transport, method: str, params: dict[str, Any] | None) -> Any:
        request = JsonRpcRequest(method=method, params=params, id=str(uuid.uuid4()))
        response = await transport.request(request)
        if not response.well_formed:
            raise ParseError(response.model_dump_json(), "response must carry result xor error")
        if response.error is not None:
            raise rpc_error_to_exception(response.error)
        return response.result

    async def _request_streamed(self, transport: Transport, method: str, params: dict[str, Any] | None) -> Any:
        timeout = self.config.request_timeout
        token, future = self._registry.register()
        try:
            request = JsonRpcRequest(method=method, params=params, id=token)
            self._logger.debug("rpc.request", method=method, id=token)
            await transport.send(request.to_line())
            try:
                return await asyncio.wait_for(future, timeout=timeout)
            except TimeoutError:
                self._logger.warning("rpc.timeout", method=method, timeout_seconds=timeout)
                raise RpcTimeoutError(method, timeout) from None
        finally:
            self._registry.discard(token)

    # -------------------------------------------------------------------------
    # Convenience wrappers
    # -------------------------------------------------------------------------

    async def send_message(
        self,
        recipient: str,
        message: str,
        options: SendMessageOptions | None = None,
    ) -> dict[str, Any]:
        return await self.messages.send_message(recipient, message, options)

    async def send_reaction(
        self,
        recipient: str,
        target_author: str,
        target_timestamp: int,
        emoji: str,
        remove: bool = False,
    ) -> dict[str, Any]:
        return await self.messages.send_reaction(recipient, target_author, target_timestamp, emoji, remove)

    async def send_receipt(self, recipient: str, target_timestamp: int) -> None:
        await self.messages.send_receipt(recipient, target_timestamp, "read")

    async def list_devices(self) -> list[dict[str, Any]]:
        return await self.devices.list_devices()

    async def list_groups(self) -> list[dict[str, Any]]:
        return await self.groups.list_groups()

    async def get_version(self) -> dict[str, Any]:
        return await self.accounts.get_version()


__all__ = ["ConnectionState", "SignalClient"]
