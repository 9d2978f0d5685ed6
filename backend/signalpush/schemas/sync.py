"""Background sync and silent notification schemas for API."""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class SyncConfigResponse(BaseModel):
    enabled: bool
    interval_minutes: int
    allowed_types: list[str]
    last_sync: Optional[datetime] = None


class SyncConfigUpdate(BaseModel):
    """Partial update of the background sync config."""
    enabled: Optional[bool] = None
    interval_minutes: Optional[int] = Field(None, gt=0, le=1440)
    allowed_types: Optional[list[str]] = None


class SyncTriggerRequest(BaseModel):
    types: Optional[list[str]] = None


class SilentResult(BaseModel):
    """Outcome of one silent handler invocation."""
    success: bool
    action: str
    executed_at: datetime
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class SyncTriggerResponse(BaseModel):
    results: list[SilentResult]


class SilentTestRequest(BaseModel):
    """Dispatch a silent notification in-process (test tooling)."""
    type: str = Field(..., min_length=1)
    payload: dict[str, Any] = {}


class SilentLogResponse(BaseModel):
    device_id: str
    type: str
    payload: Optional[dict[str, Any]] = None
    execution_time_ms: int
    success: bool
    result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    platform: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
