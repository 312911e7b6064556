"""Exception hierarchy for signal-sdk.

All SDK exceptions inherit from SignalError, enabling callers to catch
broad (SignalError) or narrow (e.g., RpcTimeoutError). Every exception
carries an ErrorKind so handlers can branch on ``exc.kind`` without an
isinstance ladder.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification attached to every SignalError."""

    CONNECTION = "connection"
    TIMEOUT = "timeout"
    RPC = "rpc"
    PARSE = "parse"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    GROUP = "group"
    MESSAGE = "message"
    UNKNOWN = "unknown"


class SignalError(Exception):
    """Base exception for all SDK errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class SignalConnectionError(SignalError):
    """Raised when the daemon cannot be reached or the transport dropped.

    Also used to reject in-flight calls when the transport closes.
    """

    kind = ErrorKind.CONNECTION

    def __init__(self, message: str = "Not connected to signal-cli daemon") -> None:
        super().__init__(message, "CONNECTION_ERROR")


class RpcTimeoutError(SignalError):
    """Raised when no response arrives within the request timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"RPC request timeout: {method} after {timeout:g}s", "TIMEOUT_ERROR")
        self.method = method
        self.timeout = timeout


class RpcError(SignalError):
    """Raised when the daemon answers a request with a JSON-RPC error object."""

    kind = ErrorKind.RPC

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"[{code}] {message}", "RPC_ERROR")
        self.rpc_code = code
        self.rpc_message = message
        self.data = data


class ParseError(SignalError):
    """Raised (or emitted as an event) for an inbound line that is not valid JSON-RPC."""

    kind = ErrorKind.PARSE

    def __init__(self, line: str, reason: str = "invalid JSON") -> None:
        super().__init__(f"Failed to parse JSON-RPC message ({reason}): {line[:200]}", "PARSE_ERROR")
        self.line = line
        self.reason = reason


class ValidationError(SignalError):
    """Raised when caller input fails validation before any I/O happens."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class RateLimitError(SignalError):
    """Raised when the Signal servers rate limit the account.

    ``challenge`` carries the token needed for submit_rate_limit_challenge.
    """

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        challenge: str | None = None,
    ) -> None:
        super().__init__(message, "RATE_LIMIT")
        self.retry_after = retry_after
        self.challenge = challenge


class AuthenticationError(SignalError):
    """Raised when the account is not registered or credentials are rejected."""

    kind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str) -> None:
        super().__init__(message, "AUTH_ERROR")


class GroupError(SignalError):
    """Raised when a group operation cannot be completed."""

    kind = ErrorKind.GROUP

    def __init__(self, message: str) -> None:
        super().__init__(message, "GROUP_ERROR")


class MessageError(SignalError):
    """Raised when a message cannot be sent or processed."""

    kind = ErrorKind.MESSAGE

    def __init__(self, message: str) -> None:
        super().__init__(message, "MESSAGE_ERROR")


__all__ = [
    "AuthenticationError",
    "ErrorKind",
    "GroupError",
    "MessageError",
    "ParseError",
    "RateLimitError",
    "RpcError",
    "RpcTimeoutError",
    "SignalConnectionError",
    "SignalError",
    "ValidationError",
]
