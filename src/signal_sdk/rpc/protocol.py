"""JSON-RPC 2.0 wire protocol models for the signal-cli daemon.

Defines Pydantic v2 models for the message types exchanged with
``signal-cli jsonRpc`` and its socket/HTTP daemons. These models enforce
the wire format at the serialization boundary; the client and managers
never build raw request dicts.

Wire format: newline-delimited JSON (NDJSON). Each message is a single
JSON object terminated by ``\\n``.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from signal_sdk.core.errors import ParseError

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 base types
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """Outbound JSON-RPC 2.0 request.

    ``id`` is always set: the SDK never sends notifications to the daemon.
    """

    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] | None = None
    id: str

    def to_line(self) -> str:
        """Serialize to a single NDJSON line (with trailing newline)."""
        return self.model_dump_json(exclude_none=True) + "\n"


class ErrorDetail(BaseModel):
    """Error payload within a JSON-RPC error response."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """Inbound response to a request.

    Exactly one of ``result`` and ``error`` must be present on the wire;
    a null ``result`` is a valid success value.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str | None = None
    result: Any = None
    error: ErrorDetail | None = None

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def well_formed(self) -> bool:
        """True when the message carries result XOR error."""
        return self.has_result != self.is_error


class JsonRpcNotification(BaseModel):
    """Daemon-initiated notification (no ``id``, no response expected).

    signal-cli pushes inbound envelopes as ``receive`` notifications.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] | None = None


InboundMessage = JsonRpcResponse | JsonRpcNotification


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def split_lines(payload: str) -> list[str]:
    """Split a chunk of daemon output into non-empty, stripped lines."""
    return [line.strip() for line in payload.strip().split("\n") if line.strip()]


def parse_message(line: str) -> InboundMessage:
    """Parse one NDJSON line into a response or notification.

    Raises:
        ParseError: If the line is not JSON, not an object, or matches
            neither message shape.
    """
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as e:
        raise ParseError(line, f"invalid JSON: {e.msg}") from e

    if not isinstance(raw, dict):
        raise ParseError(line, "not a JSON object")

    try:
        if raw.get("id") is None and "method" in raw:
            return JsonRpcNotification.model_validate(raw)
        if "id" in raw:
            return JsonRpcResponse.model_validate(raw)
    except PydanticValidationError as e:
        raise ParseError(line, f"invalid message shape: {e.error_count()} error(s)") from e

    raise ParseError(line, "neither response nor notification")


__all__ = [
    "ErrorDetail",
    "InboundMessage",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "parse_message",
    "split_lines",
]
