"""
Tracking ingestion endpoint
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field

from visitor_intel.api.deps import get_tracking_service
from visitor_intel.core.exceptions import MissingTenantContext
from visitor_intel.schemas.tracking import TrackingEvent
from visitor_intel.services.tracking_service import TrackingService

router = APIRouter()


class TrackingPayload(BaseModel):
    """Body posted by the tracking script"""
    tenant_id: Optional[str] = None
    domain: Optional[str] = None
    url: Optional[str] = None
    referrer: Optional[str] = None
    event: str = "page_view"
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None
    user_agent: Optional[str] = None
    visitor_id: Optional[str] = None
    ip: Optional[str] = None


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("")
async def track(
    payload: TrackingPayload,
    request: Request,
    x_tenant_id: Optional[str] = Header(None),
    tracking_service: TrackingService = Depends(get_tracking_service),
):
    """Record one tracking event"""
    fields = {
        "tenant_id": x_tenant_id or payload.tenant_id,
        "ip": payload.ip or client_ip(request),
        "user_agent": payload.user_agent or request.headers.get("user-agent", ""),
        "domain": payload.domain,
        "url": payload.url,
        "referrer": payload.referrer,
        "event_type": payload.event,
        "data": payload.data,
        "visitor_id": payload.visitor_id,
    }
    if payload.timestamp is not None:
        fields["timestamp"] = payload.timestamp

    try:
        result = await tracking_service.process_event(TrackingEvent(**fields))
    except MissingTenantContext as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "session_id": result.session_id,
        "enriched": result.enriched,
    }
