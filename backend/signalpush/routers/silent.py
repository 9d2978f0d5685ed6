"""Silent notification test and audit log API endpoints."""
import logging

from fastapi import APIRouter, Depends, Query

from ..container import Services, get_services
from ..schemas.sync import SilentLogResponse, SilentResult, SilentTestRequest
from ..services.envelope import NotificationEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/silent", tags=["silent"])


@router.post("/test", response_model=SilentResult)
async def test_silent_notification(
    request: SilentTestRequest,
    services: Services = Depends(get_services),
):
    """Dispatch a silent notification in-process and return the handler result.

    Unknown types come back as a failed result, not an HTTP error.
    """
    envelope = NotificationEnvelope.silent_envelope(request.type, request.payload)
    result = await services.dispatcher.handle_silent_notification(envelope)
    if not result.success:
        logger.warning(f"Silent notification test failed: {result.error_message}")
    return result.to_dict()


@router.get("/logs", response_model=list[SilentLogResponse])
async def list_silent_logs(
    limit: int = Query(50, ge=1, le=500),
    services: Services = Depends(get_services),
):
    return await services.store.list_silent_logs(limit=limit)
