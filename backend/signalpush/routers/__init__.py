"""API routers."""
from .devices import router as devices_router
from .notifications import router as notifications_router
from .analytics import router as analytics_router
from .sync import router as sync_router
from .silent import router as silent_router

__all__ = ["devices_router", "notifications_router", "analytics_router", "sync_router", "silent_router"]
