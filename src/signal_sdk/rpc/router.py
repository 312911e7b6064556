"""Routes inbound daemon output to pending calls or typed events."""

from __future__ import annotations

from signal_sdk.core.errors import ParseError, SignalError
from signal_sdk.core.logging import SignalLogger, get_logger
from signal_sdk.events import (
    ClientEvent,
    ErrorEvent,
    EventBus,
    MessageEvent,
    NotificationEvent,
    decompose_envelope,
)
from signal_sdk.rpc.correlation import PendingCallRegistry
from signal_sdk.rpc.errors import INVALID_REQUEST, rpc_error_to_exception
from signal_sdk.rpc.protocol import (
    JsonRpcNotification,
    JsonRpcResponse,
    parse_message,
    split_lines,
)


class NotificationRouter:
    """Turns raw NDJSON chunks into settled calls and published events.

    Each line is handled independently: a malformed line becomes an ERROR
    event and the remaining lines of the same chunk are still processed.
    """

    def __init__(
        self,
        registry: PendingCallRegistry,
        bus: EventBus,
        *,
        account: str | None = None,
        logger: SignalLogger | None = None,
    ) -> None:
        self._registry = registry
        self._bus = bus
        self._account = account
        self._logger = logger or get_logger("rpc.router")

    def feed(self, payload: str) -> None:
        """Process every line in ``payload``."""
        for line in split_lines(payload):
            self.route_line(line)

    def route_line(self, line: str) -> None:
        try:
            message = parse_message(line)
        except ParseError as e:
            self._logger.warning("router.parse_failed", reason=e.reason, line=line[:200])
            self._emit_error(e)
            return

        if isinstance(message, JsonRpcNotification):
            self._route_notification(message)
        else:
            self.route_response(message)

    def route_response(self, response: JsonRpcResponse) -> None:
        if not response.well_formed:
            self._logger.warning("router.malformed_response", id=response.id)
            err = ParseError(response.model_dump_json(), "response must carry result xor error")
            if response.id is not None and str(response.id) in self._registry:
                # Reject the waiting caller rather than leaving it to time out
                self._registry.settle(JsonRpcResponse(
                    id=response.id,
                    error={"code": INVALID_REQUEST, "message": err.message},
                ))
            else:
                self._emit_error(err)
            return

        if response.id is None:
            if response.error is not None:
                self._emit_error(rpc_error_to_exception(response.error))
            return

        self._registry.settle(response)

    def _route_notification(self, notification: JsonRpcNotification) -> None:
        params = notification.params or {}
        self._bus.emit(
            ClientEvent.NOTIFICATION,
            NotificationEvent(method=notification.method, params=params),
        )
        if notification.method != "receive":
            return

        envelope = params.get("envelope")
        if not isinstance(envelope, dict):
            self._logger.debug("router.receive_without_envelope")
            return

        self._bus.emit(
            ClientEvent.MESSAGE,
            MessageEvent(envelope=envelope, account=params.get("account", self._account)),
        )
        for channel, event in decompose_envelope(envelope):
            self._bus.emit(channel, event)

    def _emit_error(self, error: SignalError) -> None:
        self._bus.emit(ClientEvent.ERROR, ErrorEvent(error=error))


__all__ = ["NotificationRouter"]
