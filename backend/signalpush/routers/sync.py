"""Background sync configuration API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..container import Services, get_services
from ..schemas.sync import SyncConfigResponse, SyncConfigUpdate, SyncTriggerRequest, SyncTriggerResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/config", response_model=SyncConfigResponse)
async def get_sync_config(services: Services = Depends(get_services)):
    return services.scheduler.get_config().to_dict()


@router.put("/config", response_model=SyncConfigResponse)
async def update_sync_config(
    update: SyncConfigUpdate,
    services: Services = Depends(get_services),
):
    """Update the background sync config. Only provided fields change."""
    try:
        config = await services.scheduler.update_config(
            enabled=update.enabled,
            interval_minutes=update.interval_minutes,
            allowed_types=update.allowed_types,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return config.to_dict()


@router.post("/trigger", response_model=SyncTriggerResponse)
async def trigger_sync(
    request: Optional[SyncTriggerRequest] = None,
    services: Services = Depends(get_services),
):
    """Run a sync now, ignoring the timer and the enabled flag."""
    try:
        results = await services.scheduler.trigger_manual_sync(request.types if request else None)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"results": [r.to_dict() for r in results]}
