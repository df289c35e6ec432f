"""
Company Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from visitor_intel.schemas.common import utcnow

# Fields merged across enrichment sources, in the order they are considered
PROFILE_FIELDS = ("name", "industry", "size", "location", "email", "phone", "website")


class LeadStatus(str, Enum):
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


class Location(BaseModel):
    """Company location"""
    city: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.city or self.country or self.region)


class EnrichmentResult(BaseModel):
    """Partial company profile returned by a single source adapter"""
    name: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    location: Optional[Location] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class EnrichmentMeta(BaseModel):
    """Provenance of an enriched profile"""
    sources: List[str] = Field(default_factory=list)
    confidence: float = 0.0
    enriched_at: datetime = Field(default_factory=utcnow)


class CompanyInfo(BaseModel):
    """Merged enrichment profile for a domain"""
    domain: str
    name: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    location: Optional[Location] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    enrichment: EnrichmentMeta = Field(default_factory=EnrichmentMeta)


class CompanyProfile(CompanyInfo):
    """Tenant-scoped company record"""
    tenant_id: str
    total_visits: int = 0
    last_visit: Optional[datetime] = None
    score: int = 0
    status: LeadStatus = LeadStatus.COLD
    tags: List[str] = Field(default_factory=list)
    
    class Config:
        from_attributes = True
