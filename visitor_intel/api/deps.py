"""
Request dependencies
"""

from typing import Optional

from fastapi import Header, HTTPException, Request

from visitor_intel.core.exceptions import MissingTenantContext, require_tenant
from visitor_intel.services.company_service import CompanyService
from visitor_intel.services.container import Services
from visitor_intel.services.tracking_service import TrackingService


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_tracking_service(request: Request) -> TrackingService:
    return get_services(request).tracking_service


def get_company_service(request: Request) -> CompanyService:
    return get_services(request).company_service


def get_tenant_id(x_tenant_id: Optional[str] = Header(None)) -> str:
    """Tenant from the X-Tenant-ID header; there is no default tenant"""
    try:
        return require_tenant(x_tenant_id)
    except MissingTenantContext as e:
        raise HTTPException(status_code=400, detail=str(e))
