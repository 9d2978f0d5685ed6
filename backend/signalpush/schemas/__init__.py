"""Pydantic schemas for API request/response models."""
from .device import (
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    HeartbeatRequest,
    DeviceProfileResponse,
    DeviceCountResponse,
)
from .notification import (
    SendNotificationRequest,
    SendNotificationResponse,
    NotificationResponse,
    NotificationEventRequest,
    NotificationEventResponse,
    NotificationEventRecord,
)
from .analytics import (
    NotificationAnalytics,
    EngagementMetrics,
)
from .sync import (
    SyncConfigResponse,
    SyncConfigUpdate,
    SyncTriggerRequest,
    SyncTriggerResponse,
    SilentResult,
    SilentTestRequest,
    SilentLogResponse,
)

__all__ = [
    "DeviceRegisterRequest",
    "DeviceRegisterResponse",
    "HeartbeatRequest",
    "DeviceProfileResponse",
    "DeviceCountResponse",
    "SendNotificationRequest",
    "SendNotificationResponse",
    "NotificationResponse",
    "NotificationEventRequest",
    "NotificationEventResponse",
    "NotificationEventRecord",
    "NotificationAnalytics",
    "EngagementMetrics",
    "SyncConfigResponse",
    "SyncConfigUpdate",
    "SyncTriggerRequest",
    "SyncTriggerResponse",
    "SilentResult",
    "SilentTestRequest",
    "SilentLogResponse",
]
