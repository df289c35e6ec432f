"""
Tracking event Pydantic schemas
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from visitor_intel.schemas.common import as_utc, utcnow
from visitor_intel.schemas.company import CompanyProfile

PAGE_VIEW = "page_view"


class TrackingEvent(BaseModel):
    """Inbound tracking event, already extracted from the transport"""
    tenant_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: str = ""
    domain: Optional[str] = None
    url: Optional[str] = None
    referrer: Optional[str] = None
    event_type: str = PAGE_VIEW
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    visitor_id: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("domain")
    @classmethod
    def _normalize_domain(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None

    @property
    def is_page_view(self) -> bool:
        return self.event_type == PAGE_VIEW


class TrackingResult(BaseModel):
    """Outcome of processing one tracking event"""
    tenant_id: str
    session_id: str
    enriched: bool = False
    company: Optional[CompanyProfile] = None
