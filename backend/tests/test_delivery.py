"""Tests for the delivery service and notification response handling."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from signalpush.services.analytics import AnalyticsService
from signalpush.services.deep_links import DeepLinkRouter, LinkType
from signalpush.services.delivery import DeliveryService
from signalpush.services.message_bus import MessageBus, MessageKind
from signalpush.services.notification_responses import NotificationResponseHandler
from signalpush.services.push_gateway import BatchSendResult, TokenSendResult
from signalpush.services.task_queue import BackgroundTaskQueue


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.send = AsyncMock(return_value=BatchSendResult(
        success=True,
        results=[TokenSendResult("tok-1...", "fcm_v1", True, message_id="m1")],
        fcm_tokens=1,
    ))
    return gateway


class TestDeliveryService:

    @pytest.mark.asyncio
    async def test_creates_row_and_logs(self, store, gateway):
        await store.upsert_profile("device_1", "web", delivery_token="tok-1")
        await store.upsert_profile("device_2", "web")
        delivery = DeliveryService(store, gateway)

        response = await delivery.send_push_notification(
            "signal", "XAU/USD BUY", "Entry 2300", data={"deep_link": "signalpush://signal/42", "pair": "XAU/USD"},
        )

        assert response["success"] is True
        assert response["recipients"] == 1
        tokens, rich, notification_id = gateway.send.call_args[0]
        assert tokens == ["tok-1"]
        assert rich.deep_link.type == LinkType.SIGNAL
        assert rich.structured_data == {"pair": "XAU/USD"}
        assert notification_id == response["notification_id"]

        [notification] = await delivery.recent_notifications()
        assert notification.status == "sent"
        assert notification.sent_at is not None

    @pytest.mark.asyncio
    async def test_reuses_given_notification_id(self, store, gateway):
        existing = await store.create_notification("alert", "t", "m")
        delivery = DeliveryService(store, gateway)

        response = await delivery.send_push_notification("alert", "t", "m", data={"notification_id": existing})

        assert response["notification_id"] == existing
        assert len(await store.list_notifications()) == 1

    @pytest.mark.asyncio
    async def test_failed_batch_marks_failed(self, store, gateway):
        gateway.send.return_value = BatchSendResult(success=False, error="No delivery tokens")
        delivery = DeliveryService(store, gateway)

        response = await delivery.send_push_notification("alert", "t", "m", target_user="device_x")

        assert response["success"] is False
        [notification] = await store.list_notifications()
        assert notification.status == "failed"


class TestNotificationResponseHandler:

    @pytest.fixture
    def identity(self):
        provider = MagicMock()
        provider.resolve_identity.return_value = "device_1"
        return provider

    @pytest.mark.asyncio
    async def test_tap_logs_click_and_routes(self, store, identity):
        nid = await store.create_notification("signal", "t", "m")
        queue = BackgroundTaskQueue()
        navigator = MagicMock()
        bus = MessageBus()
        actions = AsyncMock()
        await bus.subscribe(MessageKind.NOTIFICATION_ACTION, actions)
        handler = NotificationResponseHandler(
            AnalyticsService(store), queue, DeepLinkRouter(navigator), identity, bus=bus,
        )

        action = await handler.on_response({"notification_id": nid, "deep_link": "signalpush://signal/42"})
        await queue.join()
        await queue.stop()

        assert action.route == "/(tabs)/signals?id=42"
        navigator.assert_called_once_with("/(tabs)/signals?id=42")
        [notification] = await store.list_notifications(notification_id=nid)
        assert notification.click_count == 1
        assert actions.call_args[0][0].payload["route"] == "/(tabs)/signals?id=42"

    @pytest.mark.asyncio
    async def test_impression_logs_view(self, store, identity):
        nid = await store.create_notification("signal", "t", "m")
        queue = BackgroundTaskQueue()
        handler = NotificationResponseHandler(AnalyticsService(store), queue, DeepLinkRouter(), identity)

        assert handler.on_impression({"notification_id": nid}) is True
        assert handler.on_impression({"notification_id": nid}) is True
        await queue.join()
        await queue.stop()

        [notification] = await store.list_notifications(notification_id=nid)
        assert notification.view_count == 1

    @pytest.mark.asyncio
    async def test_dismiss_is_ignored(self, store, identity):
        queue = BackgroundTaskQueue()
        handler = NotificationResponseHandler(AnalyticsService(store), queue, DeepLinkRouter(), identity)

        assert await handler.on_response({"notification_id": "n"}, action_id="dismiss") is None
        assert queue.pending == 0
