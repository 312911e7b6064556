"""Shared test helpers for signal-sdk tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from signal_sdk.core.config import ClientConfig
from signal_sdk.core.context import ClientContext
from signal_sdk.transport.base import Transport, TransportHandlers

Responder = Callable[[dict[str, Any]], dict[str, Any] | None]


class FakeTransport(Transport):
    """In-memory streaming transport.

    Records every request it is asked to send. When a ``responder`` is set,
    its reply is delivered on the next loop iteration, the way a real
    daemon's answer arrives through the reader task.
    """

    name = "fake"

    def __init__(
        self,
        ctx: ClientContext,
        handlers: TransportHandlers,
        *,
        responder: Responder | None = None,
        fail_open: BaseException | None = None,
        open_gate: asyncio.Event | None = None,
    ) -> None:
        super().__init__(ctx, handlers)
        self.responder = responder
        self.fail_open = fail_open
        self.open_gate = open_gate
        self.sent: list[dict[str, Any]] = []
        self.close_calls: list[bool] = []

    async def open(self) -> None:
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.fail_open is not None:
            raise self.fail_open
        self._mark_open()

    async def send(self, line: str) -> None:
        self._require_open()
        assert line.endswith("\n")
        request = json.loads(line)
        self.sent.append(request)
        if self.responder is not None:
            reply = self.responder(request)
            if reply is not None:
                asyncio.get_running_loop().call_soon(self.push, reply)

    async def close(self, graceful: bool = True) -> None:
        self.close_calls.append(graceful)
        self._report_close(0)

    def push(self, message: dict[str, Any] | str) -> None:
        """Deliver one inbound line as if the daemon had written it."""
        line = message if isinstance(message, str) else json.dumps(message)
        self._handlers.on_line(line)

    def drop(self, code: int | None = 1) -> None:
        """Simulate the daemon going away."""
        self._report_close(code)


class FakeTransportFactory:
    """Transport factory for SignalClient that hands out FakeTransports.

    ``failures`` are consumed one per open attempt before any success.
    While ``open_gate`` is set, new transports block in ``open()`` until
    the event fires.
    """

    def __init__(self, responder: Responder | None = None) -> None:
        self.responder = responder
        self.failures: list[BaseException] = []
        self.open_gate: asyncio.Event | None = None
        self.transports: list[FakeTransport] = []

    def __call__(self, ctx: ClientContext, handlers: TransportHandlers) -> FakeTransport:
        fail_open = self.failures.pop(0) if self.failures else None
        transport = FakeTransport(
            ctx,
            handlers,
            responder=self.responder,
            fail_open=fail_open,
            open_gate=self.open_gate,
        )
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


def result_responder(result: Any) -> Responder:
    """Answer every request with ``result``."""

    def respond(request: dict[str, Any]) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": request["id"], "result": result}

    return respond


def method_responder(results: dict[str, Any]) -> Responder:
    """Answer by method name; unknown methods get a -32601 error."""

    def respond(request: dict[str, Any]) -> dict[str, Any]:
        method = request["method"]
        if method in results:
            return {"jsonrpc": "2.0", "id": request["id"], "result": results[method]}
        return {
            "jsonrpc": "2.0",
            "id": request["id"],
            "error": {"code": -32601, "message": f"Method not found: {method}"},
        }

    return respond


class RecordingCall:
    """Stand-in for ``SignalClient.call`` when testing managers."""

    def __init__(self, result: Any = None) -> None:
        self.result = result
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    async def __call__(self, method: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append((method, params))
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result

    @property
    def last(self) -> tuple[str, dict[str, Any] | None]:
        return self.calls[-1]


def make_context(**overrides: Any) -> ClientContext:
    return ClientContext.create(ClientConfig(account="+15550000001", **overrides))


def make_envelope(
    text: str | None = "hello",
    *,
    source: str = "+15551112222",
    timestamp: int = 1_700_000_000_000,
    group_id: str | None = None,
    attachments: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """A ``receive`` envelope carrying a data message."""
    data: dict[str, Any] = {"timestamp": timestamp}
    if text is not None:
        data["message"] = text
    if attachments:
        data["attachments"] = attachments
    if group_id is not None:
        data["groupInfo"] = {"groupId": group_id, "name": "Test Group"}
    return {
        "source": source,
        "sourceNumber": source,
        "timestamp": timestamp,
        "dataMessage": data,
    }
