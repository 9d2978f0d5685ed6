"""Services for push delivery, silent notifications, background sync and analytics."""
from .store import BackendStore
from .dispatcher import NotificationDispatcher, UnknownHandlerTypeError
from .sync_scheduler import SyncScheduler, SyncConfig
from .push_gateway import PushGateway
from .delivery import DeliveryService
from .analytics import AnalyticsService

__all__ = [
    "BackendStore",
    "NotificationDispatcher",
    "UnknownHandlerTypeError",
    "SyncScheduler",
    "SyncConfig",
    "PushGateway",
    "DeliveryService",
    "AnalyticsService",
]
