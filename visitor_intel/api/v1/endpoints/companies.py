"""
Company lead endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from visitor_intel.api.deps import get_company_service, get_tenant_id
from visitor_intel.schemas.company import CompanyProfile, LeadStatus
from visitor_intel.services.company_service import CompanyService

router = APIRouter()


@router.get("", response_model=List[CompanyProfile])
async def get_companies(
    status: Optional[LeadStatus] = None,
    min_score: Optional[int] = Query(None, ge=0, le=100),
    limit: int = Query(100, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    company_service: CompanyService = Depends(get_company_service),
):
    """Get the tenant's companies, most recently seen first"""
    return await company_service.list_companies(tenant_id, status=status, min_score=min_score, limit=limit)


@router.get("/hot", response_model=List[CompanyProfile])
async def get_hot_leads(
    limit: int = Query(100, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    company_service: CompanyService = Depends(get_company_service),
):
    """Get the tenant's hot leads"""
    return await company_service.hot_leads(tenant_id, limit=limit)


@router.get("/{domain}", response_model=CompanyProfile)
async def get_company(
    domain: str,
    tenant_id: str = Depends(get_tenant_id),
    company_service: CompanyService = Depends(get_company_service),
):
    """Get company by domain"""
    company = await company_service.get_company(tenant_id, domain.lower())
    if company is None:
        raise HTTPException(status_code=404, detail="Company not found")
    return company
