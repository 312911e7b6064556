"""HTTP transport for ``signal-cli daemon --http``.

Each call is one POST to ``/api/v1/rpc`` answered by one JSON-RPC response,
so there is nothing to correlate and no connection to supervise. Inbound
notifications are not delivered in this mode; use a streaming transport to
receive messages.
"""

from __future__ import annotations

import httpx

from signal_sdk.core.context import ClientContext
from signal_sdk.core.errors import ParseError, RpcTimeoutError, SignalConnectionError
from signal_sdk.rpc.protocol import JsonRpcRequest, JsonRpcResponse, parse_message
from signal_sdk.transport.base import Transport, TransportHandlers

RPC_PATH = "/api/v1/rpc"
HEALTH_PATH = "/api/v1/check"


class HttpTransport(Transport):
    """Stateless request/response transport over httpx."""

    streaming = False
    name = "http"

    def __init__(
        self,
        ctx: ClientContext,
        handlers: TransportHandlers,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(ctx, handlers)
        self._client = client
        self._owns_client = client is None

    async def open(self) -> None:
        config = self._ctx.config
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=config.http_base_url,
                timeout=config.request_timeout,
            )
            self._owns_client = True
        try:
            response = await self._client.get(HEALTH_PATH, timeout=config.connection_timeout)
        except httpx.HTTPError as e:
            await self._discard_client()
            raise SignalConnectionError(
                f"signal-cli HTTP daemon unreachable at {config.http_base_url}: {e}"
            ) from e
        if not response.is_success:
            await self._discard_client()
            raise SignalConnectionError(
                f"signal-cli health check failed with HTTP {response.status_code}"
            )
        self._mark_open()
        self._logger.info("http.connected", base_url=config.http_base_url)

    async def send(self, line: str) -> None:
        raise TypeError("HTTP transport is request/response; use request()")

    async def request(self, request: JsonRpcRequest) -> JsonRpcResponse:
        self._require_open()
        assert self._client is not None
        try:
            response = await self._client.post(
                RPC_PATH,
                content=request.model_dump_json(exclude_none=True),
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise RpcTimeoutError(request.method, self._ctx.config.request_timeout) from e
        except httpx.HTTPError as e:
            raise SignalConnectionError(f"HTTP request to signal-cli failed: {e}") from e

        body = response.text.strip()
        if not body:
            raise SignalConnectionError(
                f"signal-cli returned HTTP {response.status_code} with an empty body"
            )
        message = parse_message(body)
        if not isinstance(message, JsonRpcResponse):
            raise ParseError(body, "expected a response, got a notification")
        return message

    async def close(self, graceful: bool = True) -> None:
        if not self._open and self._client is None:
            return
        await self._discard_client()
        self._report_close(None)

    async def _discard_client(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = ["HEALTH_PATH", "HttpTransport", "RPC_PATH"]
