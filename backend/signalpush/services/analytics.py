"""Click/impression analytics - exactly-once events and engagement rollups."""
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

EVENT_VIEWED = "viewed"
EVENT_CLICKED = "clicked"
EVENT_TYPES = (EVENT_VIEWED, EVENT_CLICKED)

COUNTER_FOR_EVENT = {
    EVENT_VIEWED: "view_count",
    EVENT_CLICKED: "click_count",
}

# Rows returned by event reads
EVENT_HISTORY_LIMIT = 100


class AnalyticsService:
    """Correlates views and clicks with notifications."""

    def __init__(self, store):
        self.store = store

    async def log_event(self, user_identity: str, notification_id: str, event_type: str) -> Dict[str, Any]:
        """Record an event once per (user, notification, type).

        A repeated event is a no-op: the counters are only incremented when
        the event row was actually inserted, in the same transaction.
        """
        if event_type not in EVENT_TYPES:
            raise ValueError(f'Invalid event_type "{event_type}". Must be "clicked" or "viewed"')

        inserted = await self.store.record_event(
            user_identity,
            notification_id,
            event_type,
            counter=COUNTER_FOR_EVENT[event_type],
            track_user=event_type == EVENT_CLICKED,
        )
        if not inserted:
            logger.info(f"Event already logged for user {user_identity} on notification {notification_id}")
            return {"success": True, "inserted": False, "message": f"{event_type} event already logged"}

        logger.info(f"Logged {event_type} event for notification {notification_id}")
        return {"success": True, "inserted": True, "message": f"{event_type} event logged successfully"}

    async def notification_analytics(self, notification_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Per-notification rollups, newest first."""
        notifications = await self.store.list_notifications(notification_id=notification_id)
        clicked = await self.store.clicked_users(n.id for n in notifications)

        rollups = []
        for n in notifications:
            users = sorted(clicked.get(n.id, set()))
            rollups.append({
                "notification_id": n.id,
                "title": n.title,
                "type": n.type,
                "click_count": n.click_count or 0,
                "view_count": n.view_count or 0,
                "clicked_user_ids": users,
                "unique_clicked_users": len(users),
                "total_events": (n.click_count or 0) + (n.view_count or 0),
                "created_at": n.created_at,
            })
        return rollups

    async def engagement_metrics(self) -> Dict[str, Any]:
        total, clicks, views = await self.store.engagement_totals()
        return {
            "total_notifications": total,
            "total_clicks": clicks,
            "total_views": views,
            "average_click_rate": clicks / total if total else 0,
            "average_view_rate": views / total if total else 0,
        }

    async def notification_events(self, notification_id: str, limit: int = EVENT_HISTORY_LIMIT):
        return await self.store.list_events(notification_id=notification_id, limit=limit)

    async def user_history(self, user_identity: str, limit: int = EVENT_HISTORY_LIMIT):
        return await self.store.list_events(user_id=user_identity, limit=limit)
