"""JSON-RPC 2.0 wire protocol, call correlation and inbound routing."""

from signal_sdk.rpc.correlation import PendingCallRegistry
from signal_sdk.rpc.errors import rpc_error_to_exception
from signal_sdk.rpc.protocol import (
    ErrorDetail,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    parse_message,
    split_lines,
)
from signal_sdk.rpc.router import NotificationRouter

__all__ = [
    "ErrorDetail",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "NotificationRouter",
    "PendingCallRegistry",
    "parse_message",
    "rpc_error_to_exception",
    "split_lines",
]
