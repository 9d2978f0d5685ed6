"""Tests for the background task queue and the message bus."""
import pytest
from unittest.mock import AsyncMock

from signalpush.services.message_bus import MessageBus, MessageKind
from signalpush.services.task_queue import BackgroundTaskQueue


class TestBackgroundTaskQueue:

    @pytest.mark.asyncio
    async def test_runs_submitted_task(self):
        queue = BackgroundTaskQueue()
        fn = AsyncMock()

        assert queue.submit("log-view", fn, "device_1", event_type="viewed") is True
        await queue.join()
        await queue.stop()

        fn.assert_awaited_once_with("device_1", event_type="viewed")

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        queue = BackgroundTaskQueue(base_delay=0)
        fn = AsyncMock(side_effect=[RuntimeError("flaky"), None])

        queue.submit("flaky", fn)
        await queue.join()
        await queue.stop()

        assert fn.await_count == 2
        assert queue.failures == []

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        queue = BackgroundTaskQueue(max_attempts=3, base_delay=0)
        fn = AsyncMock(side_effect=RuntimeError("down"))

        queue.submit("always-fails", fn)
        await queue.join()
        await queue.stop()

        assert fn.await_count == 3
        assert queue.failures[0].name == "always-fails"
        assert queue.failures[0].error == "down"

    @pytest.mark.asyncio
    async def test_full_queue_rejects(self):
        queue = BackgroundTaskQueue(max_size=1)
        queue._queue.put_nowait(object())
        assert queue.submit("overflow", AsyncMock()) is False
        queue._queue.get_nowait()
        queue._queue.task_done()
        await queue.stop()


class TestMessageBus:

    @pytest.mark.asyncio
    async def test_publish_to_kind_subscribers(self):
        bus = MessageBus()
        silent = AsyncMock(return_value="handled")
        tick = AsyncMock()
        await bus.subscribe(MessageKind.SILENT_NOTIFICATION, silent)
        await bus.subscribe(MessageKind.SYNC_TICK, tick)

        results = await bus.publish(MessageKind.SILENT_NOTIFICATION, {"type": "price-update"})

        assert results == ["handled"]
        message = silent.call_args[0][0]
        assert message.kind == MessageKind.SILENT_NOTIFICATION
        assert message.payload == {"type": "price-update"}
        tick.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self):
        bus = MessageBus()
        await bus.subscribe(MessageKind.NOTIFICATION_ACTION, AsyncMock(side_effect=RuntimeError("boom")))
        ok = AsyncMock(return_value=1)
        await bus.subscribe(MessageKind.NOTIFICATION_ACTION, ok)

        assert await bus.publish(MessageKind.NOTIFICATION_ACTION) == [1]

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self):
        bus = MessageBus()
        subscriber = AsyncMock()
        await bus.subscribe(MessageKind.SYNC_TICK, subscriber)
        await bus.subscribe(MessageKind.SYNC_TICK, subscriber)
        assert bus.subscriber_count(MessageKind.SYNC_TICK) == 1
        await bus.unsubscribe(MessageKind.SYNC_TICK, subscriber)
        assert bus.subscriber_count(MessageKind.SYNC_TICK) == 0
