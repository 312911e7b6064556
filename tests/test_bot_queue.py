"""Tests for signal_sdk.bot.queue and signal_sdk.bot.cooldown.

Covers FIFO single-flight draining, failure isolation, the idle hook,
temp-file cleanup after the grace delay, flushing cleanups on close, and
the per-user cooldown ledger.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from signal_sdk.bot.cooldown import CooldownLedger
from signal_sdk.bot.models import (
    SendAttachmentAction,
    SendMessageAction,
    SendReactionAction,
    describe_action,
)
from signal_sdk.bot.queue import ActionQueue
from signal_sdk.core.errors import RpcError
from signal_sdk.managers.models import SendMessageOptions

# ─── Helpers ──────────────────────────────────────────────────────────


class _Dispatcher:
    """Records dispatched actions; ``fail_on`` messages raise RpcError."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send_message(self, recipient: str, message: str, options: SendMessageOptions | None = None) -> Any:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self.calls.append(("send", (recipient, message, options)))
            if message in self.fail_on:
                raise RpcError(-1, f"cannot send {message}")
            return {"timestamp": 1}
        finally:
            self.in_flight -= 1

    async def send_reaction(self, recipient: str, target_author: str, target_timestamp: int, emoji: str, remove: bool = False) -> Any:
        self.calls.append(("react", (recipient, target_author, target_timestamp, emoji)))
        return {"timestamp": 2}


def _temp_file(tmp_path: Path, name: str) -> Path:
    path = tmp_path / name
    path.write_bytes(b"\x89PNG")
    return path


# ─── ActionQueue ──────────────────────────────────────────────────────


class TestActionQueue:
    """Tests for queue ordering and draining."""

    @pytest.mark.asyncio
    async def test_actions_dispatch_in_fifo_order_one_at_a_time(self):
        dispatcher = _Dispatcher()
        queue = ActionQueue(dispatcher, inter_action_delay=0)

        for i in range(5):
            queue.enqueue(SendMessageAction("+1555", f"m{i}"))
        assert queue.draining
        assert len(queue) == 5

        await queue.wait_idle()

        assert [c[1][1] for c in dispatcher.calls] == ["m0", "m1", "m2", "m3", "m4"]
        assert dispatcher.max_in_flight == 1
        assert not queue.draining

    @pytest.mark.asyncio
    async def test_failed_action_does_not_stop_the_queue(self):
        dispatcher = _Dispatcher(fail_on={"bad"})
        slept: list[float] = []

        async def sleep(delay: float) -> None:
            slept.append(delay)

        queue = ActionQueue(dispatcher, inter_action_delay=0.5, sleep=sleep)
        queue.enqueue(SendMessageAction("+1555", "bad"))
        queue.enqueue(SendMessageAction("+1555", "good"))
        await queue.wait_idle()

        assert [c[1][1] for c in dispatcher.calls] == ["bad", "good"]
        # Only the successful dispatch is followed by the pause
        assert slept == [0.5]

    @pytest.mark.asyncio
    async def test_reaction_action_dispatches_reaction(self):
        dispatcher = _Dispatcher()
        queue = ActionQueue(dispatcher, inter_action_delay=0)
        queue.enqueue(SendReactionAction("g=", "+1555", 42, "🔥"))
        await queue.wait_idle()
        assert dispatcher.calls == [("react", ("g=", "+1555", 42, "🔥"))]

    @pytest.mark.asyncio
    async def test_on_idle_called_after_drain(self):
        idle_calls = 0

        def on_idle() -> None:
            nonlocal idle_calls
            idle_calls += 1

        queue = ActionQueue(_Dispatcher(), inter_action_delay=0, on_idle=on_idle)
        queue.enqueue(SendMessageAction("+1555", "x"))
        await queue.wait_idle()
        await asyncio.sleep(0)

        assert idle_calls == 1

    @pytest.mark.asyncio
    async def test_enqueue_after_idle_starts_new_drain(self):
        dispatcher = _Dispatcher()
        queue = ActionQueue(dispatcher, inter_action_delay=0)
        queue.enqueue(SendMessageAction("+1555", "a"))
        await queue.wait_idle()
        queue.enqueue(SendMessageAction("+1555", "b"))
        await queue.wait_idle()
        assert len(dispatcher.calls) == 2

    @pytest.mark.asyncio
    async def test_wait_idle_returns_immediately_when_empty(self):
        queue = ActionQueue(_Dispatcher())
        await asyncio.wait_for(queue.wait_idle(), 0.1)


class TestAttachmentCleanup:
    """Tests for temp-file deletion after attachment sends."""

    @pytest.mark.asyncio
    async def test_file_deleted_after_cleanup_delay(self, tmp_path: Path):
        path = _temp_file(tmp_path, "img.png")
        dispatcher = _Dispatcher()
        queue = ActionQueue(dispatcher, inter_action_delay=0, cleanup_delay=0.05)

        queue.enqueue(SendAttachmentAction("+1555", "pic", (str(path),), (path,)))
        await queue.wait_idle()

        options = dispatcher.calls[0][1][2]
        assert options.attachments == [str(path)]
        assert path.exists()
        assert queue.pending_cleanups == 1

        await asyncio.sleep(0.15)
        assert not path.exists()
        assert queue.pending_cleanups == 0

    @pytest.mark.asyncio
    async def test_failed_attachment_send_removes_file_immediately(self, tmp_path: Path):
        path = _temp_file(tmp_path, "img.png")
        queue = ActionQueue(_Dispatcher(fail_on={"pic"}), inter_action_delay=0, cleanup_delay=60)

        queue.enqueue(SendAttachmentAction("+1555", "pic", (str(path),), (path,)))
        await queue.wait_idle()

        assert not path.exists()
        assert queue.pending_cleanups == 0

    @pytest.mark.asyncio
    async def test_close_flushes_pending_cleanups(self, tmp_path: Path):
        sent = _temp_file(tmp_path, "sent.png")
        queued = _temp_file(tmp_path, "queued.png")
        gate = asyncio.Event()

        async def sleep(_: float) -> None:
            await gate.wait()

        queue = ActionQueue(_Dispatcher(), inter_action_delay=1, cleanup_delay=60, sleep=sleep)
        queue.enqueue(SendAttachmentAction("+1555", "a", (str(sent),), (sent,)))
        queue.enqueue(SendAttachmentAction("+1555", "b", (str(queued),), (queued,)))
        for _ in range(20):
            await asyncio.sleep(0)
            if queue.pending_cleanups:
                break
        assert queue.pending_cleanups == 1

        await queue.close()

        assert not sent.exists()
        assert not queued.exists()
        assert queue.pending_cleanups == 0
        assert len(queue) == 0
        assert not queue.draining

    @pytest.mark.asyncio
    async def test_enqueue_after_close_drops_and_cleans(self, tmp_path: Path):
        path = _temp_file(tmp_path, "late.png")
        dispatcher = _Dispatcher()
        queue = ActionQueue(dispatcher)
        await queue.close()

        queue.enqueue(SendAttachmentAction("+1555", "late", (str(path),), (path,)))

        assert len(queue) == 0
        assert not path.exists()
        assert dispatcher.calls == []

    @pytest.mark.asyncio
    async def test_reopen_accepts_actions_again(self):
        dispatcher = _Dispatcher()
        queue = ActionQueue(dispatcher, inter_action_delay=0)
        await queue.close()
        assert queue.closed

        queue.reopen()
        queue.enqueue(SendMessageAction("+1555", "again"))
        await queue.wait_idle()

        assert not queue.closed
        assert [c[1][1] for c in dispatcher.calls] == ["again"]

    def test_describe_action(self):
        action = SendAttachmentAction("+1555", "x", ("a", "b"), ())
        assert describe_action(action)["attachment_count"] == 2


# ─── CooldownLedger ───────────────────────────────────────────────────


class TestCooldownLedger:
    """Tests for per-user cooldown tracking."""

    def test_unknown_user_is_free(self):
        ledger = CooldownLedger(2.0, clock=lambda: 100.0)
        assert not ledger.is_on_cooldown("+1555")
        assert ledger.remaining("+1555") == 0.0

    def test_cooldown_expires(self):
        now = 100.0
        ledger = CooldownLedger(2.0, clock=lambda: now)
        ledger.record("+1555")

        now = 101.0
        assert ledger.is_on_cooldown("+1555")
        assert ledger.remaining("+1555") == pytest.approx(1.0)

        now = 102.0
        assert not ledger.is_on_cooldown("+1555")

    def test_ledger_counts_distinct_users(self):
        ledger = CooldownLedger(1.0)
        ledger.record("+1")
        ledger.record("+2")
        ledger.record("+1")
        assert len(ledger) == 2
        assert "+2" in ledger
