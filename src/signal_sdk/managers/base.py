"""Shared plumbing for the feature managers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from signal_sdk.core.context import ClientContext
from signal_sdk.validators import validate_group_id, validate_recipient

CallFn = Callable[[str, dict[str, Any] | None], Awaitable[Any]]


def is_group_id(recipient: str) -> bool:
    """Heuristic: group ids are base64 and contain ``=``, ``/`` or a non-leading ``+``.

    A phone number only ever has ``+`` in first position.
    """
    return (
        "=" in recipient
        or "/" in recipient
        or ("+" in recipient and not recipient.startswith("+"))
    )


def unwrap_data(result: Any) -> Any:
    """Return ``result["data"]`` for blob-style responses, else ``result``."""
    if isinstance(result, dict) and "data" in result:
        return result["data"]
    return result


class BaseManager:
    """Thin parameter-building layer over ``SignalClient.call``.

    Managers hold no connection state; they validate arguments, build the
    daemon's parameter dict and hand it to ``call``.
    """

    def __init__(self, ctx: ClientContext, call: CallFn) -> None:
        self._ctx = ctx
        self._call = call
        self._logger = ctx.logger(f"managers.{type(self).__name__}")

    @property
    def account(self) -> str | None:
        return self._ctx.config.account

    def _params(self, **params: Any) -> dict[str, Any]:
        """Build a parameter dict with ``account`` set and None values dropped."""
        built = {"account": self.account, **params}
        return {k: v for k, v in built.items() if v is not None}

    @staticmethod
    def _target(recipient: str, *, single: bool = False) -> dict[str, Any]:
        """``groupId`` for a group, else ``recipients`` (or ``recipient`` when single)."""
        if is_group_id(recipient):
            validate_group_id(recipient)
            return {"groupId": recipient}
        validate_recipient(recipient)
        if single:
            return {"recipient": recipient}
        return {"recipients": [recipient]}


__all__ = ["BaseManager", "CallFn", "is_group_id", "unwrap_data"]
