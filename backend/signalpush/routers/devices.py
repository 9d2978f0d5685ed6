"""Device registration API endpoints for push notifications."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..container import Services, get_services
from ..schemas.device import (
    DeviceCountResponse,
    DeviceProfileResponse,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    HeartbeatRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])


@router.post("/register", response_model=DeviceRegisterResponse)
async def register_device(
    request: DeviceRegisterRequest,
    services: Services = Depends(get_services),
):
    """Create or update the profile for a device identity.

    Apps call this on every launch; a registration without a token keeps any
    token already stored.
    """
    existing = await services.store.get_profile(request.device_id)
    await services.store.upsert_profile(
        request.device_id,
        request.platform,
        app_version=request.app_version,
        delivery_token=request.fcm_token,
        keep_existing_token=True,
    )

    if request.fcm_token:
        logger.info(f"Device token stored for {request.device_id}: {request.fcm_token[:16]}...")

    return DeviceRegisterResponse(
        success=True,
        device_id=request.device_id,
        message="Device updated successfully" if existing else "Device registered successfully",
    )


@router.post("/heartbeat")
async def heartbeat(
    request: HeartbeatRequest,
    services: Services = Depends(get_services),
):
    """Refresh last_active for a registered device."""
    if not await services.store.touch_profile(request.device_id):
        raise HTTPException(status_code=404, detail="Device not found")
    return {"success": True}


@router.get("/count", response_model=DeviceCountResponse)
async def get_device_count(services: Services = Depends(get_services)):
    """Get count of registered devices (for admin dashboard)."""
    total, with_token = await services.store.count_profiles()
    return DeviceCountResponse(total=total, with_token=with_token)


@router.get("/{device_id}", response_model=DeviceProfileResponse)
async def get_device(device_id: str, services: Services = Depends(get_services)):
    profile = await services.store.get_profile(device_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Device not found")
    return profile
