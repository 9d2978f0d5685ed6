"""Notification analytics API endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..container import Services, get_services
from ..schemas.analytics import EngagementMetrics, NotificationAnalytics

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("", response_model=list[NotificationAnalytics])
async def get_analytics(
    notification_id: Optional[str] = None,
    services: Services = Depends(get_services),
):
    return await services.analytics.notification_analytics(notification_id)


@router.get("/engagement", response_model=EngagementMetrics)
async def get_engagement(services: Services = Depends(get_services)):
    """Totals and per-notification averages across all notifications."""
    return await services.analytics.engagement_metrics()


@router.get("/{notification_id}", response_model=NotificationAnalytics)
async def get_notification_analytics(
    notification_id: str,
    services: Services = Depends(get_services),
):
    rollups = await services.analytics.notification_analytics(notification_id)
    if not rollups:
        raise HTTPException(status_code=404, detail="Notification not found")
    return rollups[0]
