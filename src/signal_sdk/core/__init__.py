"""Ambient infrastructure: configuration, errors, logging and client context."""

from signal_sdk.core.config import BotConfig, BotGroupConfig, BotSettings, ClientConfig, load_config
from signal_sdk.core.context import ClientContext
from signal_sdk.core.errors import (
    AuthenticationError,
    ErrorKind,
    GroupError,
    MessageError,
    ParseError,
    RateLimitError,
    RpcError,
    RpcTimeoutError,
    SignalConnectionError,
    SignalError,
    ValidationError,
)
from signal_sdk.core.logging import configure_logging, get_logger

__all__ = [
    "AuthenticationError",
    "BotConfig",
    "BotGroupConfig",
    "BotSettings",
    "ClientConfig",
    "ClientContext",
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
    "configure_logging",
    "get_logger",
    "load_config",
]
