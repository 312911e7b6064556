"""JSON-RPC error codes and error → exception mapping for signal-cli.

Maps error objects returned by the daemon onto the SignalError hierarchy.
Daemon-specific codes live in the negative range below -1; the standard
JSON-RPC 2.0 codes are kept for completeness and for parse errors.
"""

from __future__ import annotations

from typing import Any

from signal_sdk.core.errors import (
    AuthenticationError,
    RateLimitError,
    RpcError,
    SignalError,
)
from signal_sdk.rpc.protocol import ErrorDetail

# ---------------------------------------------------------------------------
# Standard JSON-RPC 2.0 error codes
# ---------------------------------------------------------------------------

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# ---------------------------------------------------------------------------
# signal-cli extension error codes
# ---------------------------------------------------------------------------

USER_ERROR = -1
UNEXPECTED_ERROR = -2
IO_ERROR = -3
UNTRUSTED_KEY_ERROR = -4
RATE_LIMIT_ERROR = -5

_AUTH_MARKERS = ("not registered", "authorization failed", "unauthorized")


def _find_key(data: Any, *keys: str) -> Any:
    """Depth-first search for the first of ``keys`` in nested dicts/lists."""
    if isinstance(data, dict):
        for key in keys:
            if data.get(key) is not None:
                return data[key]
        children: list[Any] = list(data.values())
    elif isinstance(data, list):
        children = data
    else:
        return None
    for child in children:
        found = _find_key(child, *keys)
        if found is not None:
            return found
    return None


def is_rate_limit(detail: ErrorDetail) -> bool:
    return detail.code == RATE_LIMIT_ERROR or "rate limit" in detail.message.lower()


def rpc_error_to_exception(error: ErrorDetail | dict[str, Any]) -> SignalError:
    """Convert a JSON-RPC error object into the appropriate SignalError.

    Rate-limit errors become RateLimitError carrying the challenge token and
    retry delay when the daemon supplies them; authentication failures become
    AuthenticationError; everything else is an RpcError with code and data.
    """
    if isinstance(error, ErrorDetail):
        detail = error
    else:
        detail = ErrorDetail.model_validate(
            {"code": INTERNAL_ERROR, "message": "Unknown error", **error}
        )

    if is_rate_limit(detail):
        retry_after = _find_key(detail.data, "retryAfterSeconds", "retryAfter", "retry_after")
        challenge = _find_key(detail.data, "challenge", "token")
        return RateLimitError(
            detail.message,
            retry_after=float(retry_after) if retry_after is not None else None,
            challenge=str(challenge) if challenge is not None else None,
        )

    message_lower = detail.message.lower()
    if any(marker in message_lower for marker in _AUTH_MARKERS):
        return AuthenticationError(detail.message)

    return RpcError(detail.code, detail.message, detail.data)


__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "IO_ERROR",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "RATE_LIMIT_ERROR",
    "UNEXPECTED_ERROR",
    "UNTRUSTED_KEY_ERROR",
    "USER_ERROR",
    "is_rate_limit",
    "rpc_error_to_exception",
]
