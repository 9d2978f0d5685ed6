"""Delivery service - records visible notifications and sends them to devices."""
import logging
from typing import Any, Dict, Iterable, List, Optional

from . import deep_links
from .push_gateway import PushGateway, is_relay_token
from .rich_notifications import RichNotification, default_actions

logger = logging.getLogger(__name__)

# Rows returned by recent_notifications
RECENT_LIMIT = 50


class DeliveryService:
    """Creates notification rows, selects recipients and logs each batch."""

    def __init__(self, store, gateway: PushGateway):
        self.store = store
        self.gateway = gateway

    def build_rich_notification(
        self,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> RichNotification:
        data = dict(data or {})
        data.pop("notification_id", None)
        link = data.pop("deep_link", None)
        image = data.pop("image", None)
        return RichNotification(
            title=title,
            body=message,
            image=image,
            actions=default_actions(type),
            deep_link=deep_links.parse(link) if link else None,
            structured_data=data,
        )

    async def send_push_notification(
        self,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        target_user: Optional[str] = None,
        target_device_ids: Optional[Iterable[str]] = None,
        rich: Optional[RichNotification] = None,
    ) -> Dict[str, Any]:
        """Send a visible notification to all, one, or a list of installations.

        Reuses data["notification_id"] when present instead of creating a row.
        """
        data = dict(data or {})
        notification_id = data.get("notification_id")
        if not notification_id:
            notification_id = await self.store.create_notification(
                type=type,
                title=title,
                message=message,
                data=data,
                target_user=target_user,
            )
        logger.info(f"Processing push notification {notification_id}: {type} '{title}'")

        recipients = await self.store.list_delivery_tokens(
            target_user=target_user,
            identities=list(target_device_ids) if target_device_ids else None,
        )
        tokens = [token for _, token, _ in recipients]
        logger.info(f"Found {len(recipients)} device profiles with delivery tokens")

        notification = rich or self.build_rich_notification(type, title, message, data)
        batch = await self.gateway.send(tokens, notification, notification_id)
        status = "sent" if batch.success else "failed"

        await self.store.update_notification_status(notification_id, status)
        await self.store.insert_notification_log(
            notification_id,
            status,
            result=batch.to_dict(),
            error_message=None if batch.success else (batch.error or "Some notifications failed to send"),
        )

        return {
            "success": batch.success,
            "notification_id": notification_id,
            "recipients": len(recipients),
            "fcm_tokens": len([t for t in tokens if not is_relay_token(t)]),
            "relay_tokens": len([t for t in tokens if is_relay_token(t)]),
            "send_results": batch.to_dict(),
        }

    async def recent_notifications(self, limit: int = RECENT_LIMIT) -> List[Any]:
        return await self.store.list_notifications(limit=limit)
