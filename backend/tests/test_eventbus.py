"""
Wiki Backend: Event Bus Tests
=============================

What:  Tests for EventBus request/reply semantics, independent of the wiki.

What we test:
    ✅ Replies reach the right caller, also under concurrency
    ✅ Recipient failures carry their code to the caller
    ✅ Missing consumer and timeouts are reported as typed ReplyErrors
    ✅ A message completes exactly once
    ✅ Handlers that raise or forget to reply still produce a failure
"""

import asyncio

import pytest

from wikiapp.eventbus import EventBus, Message
from wikiapp.exceptions import (
    BUS_FAILURE_CODE,
    MessageAlreadyRepliedError,
    ReplyError,
    ReplyFailureType,
)


class TestRequestReply:

    @pytest.mark.asyncio
    async def test_reply_body_is_returned(self, event_bus):
        async def handler(message: Message):
            message.reply({"echo": message.body["text"], "action": message.headers["action"]})

        event_bus.consumer("echo", handler)

        reply = await event_bus.request("echo", {"text": "hi"}, headers={"action": "say"})

        assert reply == {"echo": "hi", "action": "say"}

    @pytest.mark.asyncio
    async def test_each_message_gets_its_own_correlation_id(self, event_bus):
        seen = []

        async def handler(message: Message):
            seen.append(message.correlation_id)
            message.reply()

        event_bus.consumer("ids", handler)
        await event_bus.request("ids", {})
        await event_bus.request("ids", {})

        assert len(set(seen)) == 2

    @pytest.mark.asyncio
    async def test_concurrent_replies_are_not_mixed_up(self, event_bus):
        """Later requests finish first; each caller still gets its own answer."""
        async def handler(message: Message):
            await asyncio.sleep(0.01 * (5 - message.body["n"]))
            message.reply(message.body["n"])

        event_bus.consumer("slow", handler)

        replies = await asyncio.gather(
            *(event_bus.request("slow", {"n": n}) for n in range(5))
        )

        assert replies == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_recipient_failure_carries_code(self, event_bus):
        async def handler(message: Message):
            message.fail(42, "nope")

        event_bus.consumer("fails", handler)

        with pytest.raises(ReplyError) as exc_info:
            await event_bus.request("fails", {})

        assert exc_info.value.failure_code == 42
        assert exc_info.value.failure_type is ReplyFailureType.RECIPIENT
        assert exc_info.value.message == "nope"


class TestBusFailures:

    @pytest.mark.asyncio
    async def test_no_handlers(self, event_bus):
        with pytest.raises(ReplyError) as exc_info:
            await event_bus.request("nobody.home", {})

        assert exc_info.value.failure_type is ReplyFailureType.NO_HANDLERS
        assert exc_info.value.failure_code == BUS_FAILURE_CODE

    @pytest.mark.asyncio
    async def test_timeout_and_late_reply_is_dropped(self, event_bus):
        release = asyncio.Event()
        late_reply_errors = []

        async def handler(message: Message):
            await release.wait()
            try:
                message.reply("too late")
            except Exception as e:  # recorded for the assertion below
                late_reply_errors.append(e)

        event_bus.consumer("stuck", handler)

        with pytest.raises(ReplyError) as exc_info:
            await event_bus.request("stuck", {}, timeout=0.05)
        assert exc_info.value.failure_type is ReplyFailureType.TIMEOUT

        release.set()
        await asyncio.sleep(0.01)
        assert late_reply_errors == []

    @pytest.mark.asyncio
    async def test_duplicate_consumer_rejected(self, event_bus):
        async def handler(message: Message):
            message.reply()

        event_bus.consumer("one", handler)

        with pytest.raises(ValueError):
            event_bus.consumer("one", handler)

    @pytest.mark.asyncio
    async def test_unregistered_consumer_stops_receiving(self, event_bus):
        async def handler(message: Message):
            message.reply()

        consumer = event_bus.consumer("temp", handler)
        await consumer.unregister()

        assert not event_bus.has_consumer("temp")
        with pytest.raises(ReplyError) as exc_info:
            await event_bus.request("temp", {})
        assert exc_info.value.failure_type is ReplyFailureType.NO_HANDLERS


class TestExactlyOnce:

    @pytest.mark.asyncio
    async def test_second_reply_raises(self, event_bus):
        errors = []

        async def handler(message: Message):
            message.reply("first")
            try:
                message.fail(1, "second")
            except MessageAlreadyRepliedError as e:
                errors.append(e)

        event_bus.consumer("twice", handler)

        assert await event_bus.request("twice", {}) == "first"
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_raising_handler_fails_message(self):
        bus = EventBus(default_timeout=1.0)

        async def handler(message: Message):
            raise RuntimeError("boom")

        bus.consumer("raises", handler, unhandled_failure_code=7)
        try:
            with pytest.raises(ReplyError) as exc_info:
                await bus.request("raises", {})
        finally:
            await bus.close()

        assert exc_info.value.failure_code == 7
        assert "boom" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_silent_handler_fails_message(self):
        bus = EventBus(default_timeout=1.0)

        async def handler(message: Message):
            return None

        bus.consumer("silent", handler, unhandled_failure_code=7)
        try:
            with pytest.raises(ReplyError) as exc_info:
                await bus.request("silent", {})
        finally:
            await bus.close()

        assert exc_info.value.failure_code == 7
        assert exc_info.value.failure_type is ReplyFailureType.RECIPIENT
