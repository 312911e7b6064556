"""signal-sdk: asyncio JSON-RPC client and bot framework for signal-cli."""

from signal_sdk.bot import BotCommand, BotEvent, ParsedMessage, SignalBot
from signal_sdk.client import ConnectionState, SignalClient
from signal_sdk.core import (
    AuthenticationError,
    BotConfig,
    ClientConfig,
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
    configure_logging,
    get_logger,
    load_config,
)
from signal_sdk.events import ClientEvent, EventBus
from signal_sdk.multi_account import MultiAccountManager

__version__ = "0.4.0"

__all__ = [
    "AuthenticationError",
    "BotCommand",
    "BotConfig",
    "BotEvent",
    "ClientConfig",
    "ClientEvent",
    "ConnectionState",
    "ErrorKind",
    "EventBus",
    "GroupError",
    "MessageError",
    "MultiAccountManager",
    "ParseError",
    "ParsedMessage",
    "RateLimitError",
    "RpcError",
    "RpcTimeoutError",
    "SignalBot",
    "SignalClient",
    "SignalConnectionError",
    "SignalError",
    "ValidationError",
    "__version__",
    "configure_logging",
    "get_logger",
    "load_config",
]
