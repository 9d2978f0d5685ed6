"""Database models."""
from .settings import Setting
from .device_profile import DeviceProfile
from .notification import Notification, NotificationLog
from .notification_event import NotificationEvent, ClickedUser
from .silent_notification import SilentNotificationLog

__all__ = [
    "Setting",
    "DeviceProfile",
    "Notification",
    "NotificationLog",
    "NotificationEvent",
    "ClickedUser",
    "SilentNotificationLog",
]
