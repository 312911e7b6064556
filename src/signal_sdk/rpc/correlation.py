"""In-flight request registry keyed by correlation token.

Each outbound request gets a fresh uuid4 token and a future. The router
settles the future when the matching response arrives; the caller removes
the entry on every exit path (response, timeout, cancellation), and the
client fails every entry when the transport closes.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from signal_sdk.core.errors import SignalError
from signal_sdk.core.logging import SignalLogger, get_logger
from signal_sdk.rpc.errors import rpc_error_to_exception
from signal_sdk.rpc.protocol import JsonRpcResponse


class PendingCallRegistry:
    """Map of correlation token → future awaiting the daemon's answer.

    Only touched from the event loop thread.
    """

    def __init__(self, logger: SignalLogger | None = None) -> None:
        self._logger = logger or get_logger("rpc.correlation")
        self._pending: dict[str, asyncio.Future[Any]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, token: object) -> bool:
        return token in self._pending

    def register(self) -> tuple[str, asyncio.Future[Any]]:
        """Create a token and its future.

        Returns:
            ``(token, future)``; the token is unique among live entries.
        """
        token = str(uuid.uuid4())
        while token in self._pending:
            token = str(uuid.uuid4())
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[token] = future
        return token, future

    def discard(self, token: str) -> None:
        """Remove ``token`` if still present. Safe to call twice."""
        self._pending.pop(token, None)

    def settle(self, response: JsonRpcResponse) -> bool:
        """Resolve or reject the future matching ``response.id``.

        Returns:
            False when no live entry matches (late response after timeout,
            or an id this client never issued); the response is dropped.
        """
        token = str(response.id)
        future = self._pending.pop(token, None)
        if future is None:
            self._logger.debug("rpc.late_response_dropped", request_id=token)
            return False
        if future.done():
            return False
        if response.error is not None:
            future.set_exception(rpc_error_to_exception(response.error))
        else:
            future.set_result(response.result)
        return True

    def fail_all(self, exc: SignalError) -> int:
        """Reject every pending future with ``exc`` and clear the registry.

        Returns:
            Number of calls that were failed.
        """
        pending = list(self._pending.values())
        self._pending.clear()
        failed = 0
        for future in pending:
            if not future.done():
                future.set_exception(exc)
                failed += 1
        if failed:
            self._logger.warning("rpc.pending_failed", count=failed, reason=str(exc))
        return failed


__all__ = ["PendingCallRegistry"]
