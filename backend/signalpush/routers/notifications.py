"""Notification sending and event logging API endpoints."""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..container import Services, get_services
from ..schemas.notification import (
    NotificationEventRecord,
    NotificationEventRequest,
    NotificationEventResponse,
    NotificationResponse,
    SendNotificationRequest,
    SendNotificationResponse,
)
from ..services.analytics import EVENT_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
        return True
    except ValueError:
        return False


@router.post("/send", response_model=SendNotificationResponse)
async def send_notification(
    request: SendNotificationRequest,
    services: Services = Depends(get_services),
):
    """Send a visible notification to all devices, one device or a list of devices."""
    logger.info(f"Processing push notification: {request.type} '{request.title}' target={request.target_user}")
    try:
        return await services.delivery.send_push_notification(
            type=request.type,
            title=request.title,
            message=request.message,
            data=request.data,
            target_user=request.target_user,
            target_device_ids=request.target_device_ids,
        )
    except Exception as e:
        logger.error(f"Notification send failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to process notification: {e}")


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=500),
    services: Services = Depends(get_services),
):
    """List recent notifications, newest first."""
    return await services.delivery.recent_notifications(limit=limit)


@router.post("/events", response_model=NotificationEventResponse)
async def log_notification_event(
    request: NotificationEventRequest,
    services: Services = Depends(get_services),
):
    """Log a view or click. Repeating the same event is a no-op."""
    if not request.user_id or not request.notification_id or not request.event_type:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: user_id, notification_id, event_type",
        )
    if request.event_type not in EVENT_TYPES:
        raise HTTPException(status_code=400, detail='Invalid event_type. Must be "clicked" or "viewed"')
    if not _is_uuid(request.notification_id):
        raise HTTPException(status_code=400, detail="Invalid UUID format for notification_id")

    return await services.analytics.log_event(
        request.user_id, request.notification_id, request.event_type
    )


@router.get("/events", response_model=list[NotificationEventRecord])
async def list_notification_events(
    notification_id: Optional[str] = None,
    user_id: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """Events for one notification or one user's interaction history."""
    if notification_id:
        return await services.analytics.notification_events(notification_id)
    if user_id:
        return await services.analytics.user_history(user_id)
    raise HTTPException(status_code=400, detail="notification_id or user_id is required")
