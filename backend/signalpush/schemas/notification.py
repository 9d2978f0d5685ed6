"""Notification schemas for API."""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class SendNotificationRequest(BaseModel):
    """Schema for sending a visible push notification."""
    type: str = Field(..., pattern="^(signal|achievement|announcement|alert)$")
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    data: Optional[dict[str, Any]] = None
    target_user: Optional[str] = None
    target_device_ids: Optional[list[str]] = None


class SendNotificationResponse(BaseModel):
    success: bool
    notification_id: str
    recipients: int
    fcm_tokens: int
    relay_tokens: int
    send_results: dict[str, Any]


class NotificationResponse(BaseModel):
    """Schema for a stored notification in API responses."""
    id: str
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    target_user: Optional[str] = None
    status: str
    view_count: int = 0
    click_count: int = 0
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationEventRequest(BaseModel):
    """View or click event. Fields are validated in the router so that
    missing values return 400 like other validation failures."""
    user_id: Optional[str] = None
    notification_id: Optional[str] = None
    event_type: Optional[str] = None


class NotificationEventResponse(BaseModel):
    success: bool
    inserted: bool
    message: str


class NotificationEventRecord(BaseModel):
    user_id: str
    notification_id: str
    event_type: str
    event_time: Optional[datetime] = None

    class Config:
        from_attributes = True
