"""Per-user command cooldowns."""

from __future__ import annotations

import time
from collections.abc import Callable


class CooldownLedger:
    """Last-command time per user.

    Entries are never removed; the ledger grows with the number of distinct
    users, and its size doubles as the bot's "active users" count.
    """

    def __init__(self, cooldown_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._last_command: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._last_command)

    def __contains__(self, user: object) -> bool:
        return user in self._last_command

    def is_on_cooldown(self, user: str) -> bool:
        last = self._last_command.get(user)
        if last is None:
            return False
        return self._clock() - last < self._cooldown

    def remaining(self, user: str) -> float:
        """Seconds until ``user`` may run another command (0 when free)."""
        last = self._last_command.get(user)
        if last is None:
            return 0.0
        return max(0.0, self._cooldown - (self._clock() - last))

    def record(self, user: str) -> None:
        self._last_command[user] = self._clock()


__all__ = ["CooldownLedger"]
