"""Device profile schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class DeviceRegisterRequest(BaseModel):
    """Request to register (or refresh) an installation's profile."""
    device_id: str = Field(..., min_length=1)
    fcm_token: Optional[str] = None
    platform: str = Field(default="web", pattern="^(ios|android|web)$")
    app_version: Optional[str] = None


class DeviceRegisterResponse(BaseModel):
    """Response after registering a device."""
    success: bool
    device_id: str
    message: str


class HeartbeatRequest(BaseModel):
    device_id: str = Field(..., min_length=1)


class DeviceProfileResponse(BaseModel):
    """Schema for a device profile in API responses."""
    user_id: str
    fcm_token: Optional[str] = None
    device_type: str
    app_version: Optional[str] = None
    last_active: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeviceCountResponse(BaseModel):
    total: int
    with_token: int
