"""
Visitor session endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from visitor_intel.api.deps import get_tenant_id, get_tracking_service
from visitor_intel.schemas.visitor import VisitorSummary
from visitor_intel.services.tracking_service import TrackingService

router = APIRouter()


@router.get("", response_model=List[VisitorSummary])
async def get_visitors(
    domain: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    tracking_service: TrackingService = Depends(get_tracking_service),
):
    """Get the tenant's visitor sessions, newest first"""
    return await tracking_service.list_visitors(tenant_id, domain=domain, limit=limit)
