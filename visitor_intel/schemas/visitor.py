"""
Visitor session Pydantic schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from visitor_intel.schemas.common import utcnow
from visitor_intel.schemas.company import CompanyInfo


class PageVisit(BaseModel):
    """A page viewed during a session"""
    url: str = "/"
    title: str = "Unknown"
    timestamp: datetime = Field(default_factory=utcnow)


class SessionEvent(BaseModel):
    """A non page-view behavioral event"""
    event_type: str
    timestamp: datetime = Field(default_factory=utcnow)
    payload: Dict[str, Any] = Field(default_factory=dict)


class SessionSeed(BaseModel):
    """Values a session is created with on first sight"""
    domain: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent_raw: str = ""
    referrer: Optional[str] = None
    visitor_id: Optional[str] = None
    start_time: datetime = Field(default_factory=utcnow)


class VisitorSession(BaseModel):
    """One browsing episode"""
    tenant_id: str
    session_id: str
    domain: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent_raw: str = ""
    referrer: Optional[str] = None
    visitor_id: Optional[str] = None
    pages: List[PageVisit] = Field(default_factory=list)
    events: List[SessionEvent] = Field(default_factory=list)
    company_info: Optional[CompanyInfo] = None
    start_time: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)

    @property
    def duration_seconds(self) -> float:
        return max((self.last_activity - self.start_time).total_seconds(), 0.0)


class VisitorSummary(BaseModel):
    """Session as shown in visitor listings"""
    session_id: str
    tenant_id: str
    domain: Optional[str] = None
    start_time: datetime
    last_activity: datetime
    duration: int
    page_views: int
    event_count: int
    browser: str
    device: str
    os: str
    company_name: Optional[str] = None
    confidence: Optional[float] = None
