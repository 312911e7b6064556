"""Transports connecting a SignalClient to a signal-cli daemon."""

from signal_sdk.transport.base import (
    DiagnosticLine,
    Transport,
    TransportHandlers,
    create_transport,
)
from signal_sdk.transport.http import HttpTransport
from signal_sdk.transport.process import ProcessTransport, build_command, classify_stderr_line
from signal_sdk.transport.socket import TcpTransport, UnixSocketTransport

__all__ = [
    "DiagnosticLine",
    "HttpTransport",
    "ProcessTransport",
    "TcpTransport",
    "Transport",
    "TransportHandlers",
    "UnixSocketTransport",
    "build_command",
    "classify_stderr_line",
    "create_transport",
]
