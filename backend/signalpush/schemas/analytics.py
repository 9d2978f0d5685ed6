"""Analytics schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class NotificationAnalytics(BaseModel):
    """Per-notification rollup."""
    notification_id: str
    title: str
    type: str
    click_count: int
    view_count: int
    clicked_user_ids: list[str] = []
    unique_clicked_users: int
    total_events: int
    created_at: Optional[datetime] = None


class EngagementMetrics(BaseModel):
    total_notifications: int
    total_clicks: int
    total_views: int
    average_click_rate: float
    average_view_rate: float
