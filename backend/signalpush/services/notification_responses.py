"""Handles impressions and taps on delivered notifications."""
import logging
from typing import Any, Mapping, Optional

from .analytics import AnalyticsService, EVENT_CLICKED, EVENT_VIEWED
from .deep_links import DeepLinkRouter, NavigationAction
from .message_bus import MessageBus, MessageKind
from .task_queue import BackgroundTaskQueue

logger = logging.getLogger(__name__)

DISMISS_ACTION = "dismiss"


class NotificationResponseHandler:
    """Queues view/click events and routes taps to their deep link."""

    def __init__(
        self,
        analytics: AnalyticsService,
        task_queue: BackgroundTaskQueue,
        router: DeepLinkRouter,
        identity_provider,
        bus: Optional[MessageBus] = None,
    ):
        self.analytics = analytics
        self.task_queue = task_queue
        self.router = router
        self.identity_provider = identity_provider
        self.bus = bus

    def _queue_event(self, data: Mapping[str, Any], event_type: str) -> bool:
        notification_id = data.get("notification_id")
        if not notification_id:
            logger.debug(f"Notification without id, {event_type} event not logged")
            return False
        user_identity = data.get("user_id") or self.identity_provider.resolve_identity()
        return self.task_queue.submit(
            f"log-{event_type}-{notification_id}",
            self.analytics.log_event,
            user_identity,
            notification_id,
            event_type,
        )

    def on_impression(self, data: Mapping[str, Any]) -> bool:
        """Called when a notification is shown."""
        return self._queue_event(data, EVENT_VIEWED)

    async def on_response(self, data: Mapping[str, Any], action_id: Optional[str] = None) -> Optional[NavigationAction]:
        """Called when the user taps a notification or one of its actions.

        Dismissals are neither counted nor routed.
        """
        if action_id == DISMISS_ACTION:
            logger.debug(f"Notification {data.get('notification_id')} dismissed")
            return None

        self._queue_event(data, EVENT_CLICKED)
        action = self.router.open(data.get("deep_link") or None)

        if self.bus is not None:
            await self.bus.publish(MessageKind.NOTIFICATION_ACTION, {
                "notification_id": data.get("notification_id"),
                "action": action_id or "default",
                "route": action.route,
            })
        return action
