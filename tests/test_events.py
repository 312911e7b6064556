"""Tests for signal_sdk.events module.

Covers EventBus subscription management, sync and async delivery,
isolation of failing subscribers, wait_for, shutdown, and envelope
decomposition into typed sub-events.
"""

from __future__ import annotations

import asyncio

import pytest

from signal_sdk.events import (
    ClientEvent,
    EventBus,
    ReactionEvent,
    ReceiptEvent,
    StoryEvent,
    TypingEvent,
    decompose_envelope,
)

# ─── Subscriptions ────────────────────────────────────────────────────


class TestSubscriptions:
    """Tests for subscribe/unsubscribe bookkeeping."""

    def test_subscribe_returns_unique_ids(self):
        bus = EventBus()
        a = bus.subscribe(ClientEvent.MESSAGE, lambda _: None)
        b = bus.subscribe(ClientEvent.MESSAGE, lambda _: None)
        assert a != b
        assert bus.subscriber_count() == 2
        assert bus.subscriber_count(ClientEvent.MESSAGE) == 2
        assert bus.subscriber_count(ClientEvent.ERROR) == 0

    def test_unsubscribe_removes_subscriber(self):
        bus = EventBus()
        sub_id = bus.subscribe(ClientEvent.MESSAGE, lambda _: None)
        assert bus.unsubscribe(sub_id) is True
        assert bus.unsubscribe(sub_id) is False
        assert bus.subscriber_count() == 0

    def test_emit_only_reaches_matching_channel(self):
        bus = EventBus()
        messages: list[object] = []
        errors: list[object] = []
        bus.subscribe(ClientEvent.MESSAGE, messages.append)
        bus.subscribe(ClientEvent.ERROR, errors.append)

        delivered = bus.emit(ClientEvent.MESSAGE, "payload")

        assert delivered == 1
        assert messages == ["payload"]
        assert errors == []

    def test_channels_can_be_any_hashable(self):
        """The bot layer reuses the bus with its own channel enum."""
        bus = EventBus()
        seen: list[object] = []
        bus.subscribe("ready", seen.append)
        bus.emit("ready", None)
        assert seen == [None]


# ─── Delivery ─────────────────────────────────────────────────────────


class TestDelivery:
    """Tests for sync/async callbacks and failure isolation."""

    @pytest.mark.asyncio
    async def test_async_callback_runs_as_task(self):
        bus = EventBus()
        seen: list[object] = []

        async def handler(payload: object) -> None:
            await asyncio.sleep(0)
            seen.append(payload)

        bus.subscribe(ClientEvent.MESSAGE, handler)
        bus.emit(ClientEvent.MESSAGE, 1)
        assert seen == []

        await bus.drain()
        assert seen == [1]

    def test_failing_subscriber_does_not_block_others(self):
        bus = EventBus()
        seen: list[object] = []

        def broken(_: object) -> None:
            raise RuntimeError("boom")

        bus.subscribe(ClientEvent.MESSAGE, broken)
        bus.subscribe(ClientEvent.MESSAGE, seen.append)

        bus.emit(ClientEvent.MESSAGE, "x")

        assert seen == ["x"]

    def test_subscriber_disabled_after_ten_consecutive_failures(self):
        bus = EventBus()
        calls = 0

        def broken(_: object) -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        bus.subscribe(ClientEvent.MESSAGE, broken)
        for _ in range(15):
            bus.emit(ClientEvent.MESSAGE, None)

        assert calls == 10
        assert bus.emit(ClientEvent.MESSAGE, None) == 0

    def test_success_resets_failure_count(self):
        bus = EventBus()
        calls = 0

        def flaky(_: object) -> None:
            nonlocal calls
            calls += 1
            if calls % 5 != 0:
                raise RuntimeError("boom")

        bus.subscribe(ClientEvent.MESSAGE, flaky)
        for _ in range(20):
            bus.emit(ClientEvent.MESSAGE, None)

        assert calls == 20

    @pytest.mark.asyncio
    async def test_async_callback_failure_is_counted(self):
        bus = EventBus()

        async def broken(_: object) -> None:
            raise RuntimeError("boom")

        bus.subscribe(ClientEvent.MESSAGE, broken)
        for _ in range(10):
            bus.emit(ClientEvent.MESSAGE, None)
            await bus.drain()

        assert bus.emit(ClientEvent.MESSAGE, None) == 0


# ─── wait_for / shutdown ──────────────────────────────────────────────


class TestWaitAndClose:
    """Tests for wait_for() and aclose()."""

    @pytest.mark.asyncio
    async def test_wait_for_returns_next_payload(self):
        bus = EventBus()
        loop = asyncio.get_running_loop()
        loop.call_soon(bus.emit, ClientEvent.CLOSE, "closed")

        assert await bus.wait_for(ClientEvent.CLOSE, timeout=1) == "closed"
        assert bus.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_wait_for_times_out(self):
        bus = EventBus()
        with pytest.raises(TimeoutError):
            await bus.wait_for(ClientEvent.CLOSE, timeout=0.01)
        assert bus.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_callbacks(self):
        bus = EventBus()
        started = asyncio.Event()

        async def slow(_: object) -> None:
            started.set()
            await asyncio.sleep(60)

        bus.subscribe(ClientEvent.MESSAGE, slow)
        bus.emit(ClientEvent.MESSAGE, None)
        await started.wait()

        await bus.aclose()

        assert bus.subscriber_count() == 0


# ─── Envelope decomposition ───────────────────────────────────────────


class TestDecomposeEnvelope:
    """Tests for decompose_envelope()."""

    def test_plain_text_has_no_sub_events(self):
        envelope = {"source": "+1555", "dataMessage": {"message": "hi"}}
        assert decompose_envelope(envelope) == []

    def test_group_reaction_carries_group_id(self):
        envelope = {
            "sourceNumber": "+15551112222",
            "timestamp": 10,
            "dataMessage": {
                "groupInfo": {"groupId": "abc="},
                "reaction": {
                    "emoji": "❤️",
                    "targetAuthorNumber": "+15550000001",
                    "targetSentTimestamp": 9,
                    "isRemove": True,
                },
            },
        }
        [(channel, event)] = decompose_envelope(envelope)
        assert channel is ClientEvent.REACTION
        assert event == ReactionEvent(
            emoji="❤️",
            sender="+15551112222",
            target_author="+15550000001",
            target_timestamp=9,
            is_remove=True,
            timestamp=10,
            group_id="abc=",
        )

    def test_receipt_type_defaults(self):
        viewed = decompose_envelope({"receiptMessage": {"isViewed": True, "timestamps": [1]}})
        delivery = decompose_envelope({"receiptMessage": {"isDelivery": True, "timestamps": [1]}})
        explicit = decompose_envelope({"receiptMessage": {"type": "READ"}})

        assert isinstance(viewed[0][1], ReceiptEvent) and viewed[0][1].type == "VIEWED"
        assert delivery[0][1].type == "DELIVERY"
        assert explicit[0][1].type == "READ"
        assert explicit[0][1].timestamps == ()

    def test_one_envelope_can_yield_several_events(self):
        envelope = {
            "sourceUuid": "u-1",
            "timestamp": 3,
            "typingMessage": {"action": "STOPPED", "groupId": "g="},
            "storyMessage": {"textAttachment": {"text": "story"}},
        }
        events = decompose_envelope(envelope)
        assert [ch for ch, _ in events] == [ClientEvent.TYPING, ClientEvent.STORY]
        typing, story = events[0][1], events[1][1]
        assert isinstance(typing, TypingEvent)
        assert typing.timestamp == 3
        assert typing.group_id == "g="
        assert isinstance(story, StoryEvent)
        assert story.sender == "u-1"
