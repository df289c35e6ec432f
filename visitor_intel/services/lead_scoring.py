"""
Lead scoring

Additive behavioral score, capped at 100:

    base visit                          +10
    pages (only when more than one)     +min(pages * 5, 30)
    duration > 30s / > 120s / > 300s    +10 / +15 / +20, cumulative
    events (at least one)               +min(events * 3, 20)
    returning identity                  +15
    contact or about page               +20
    pricing page                        +25
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from visitor_intel.schemas.company import LeadStatus
from visitor_intel.schemas.visitor import VisitorSession

MAX_SCORE = 100
BASE_SCORE = 10

PAGE_POINTS = 5
PAGE_CAP = 30

# (threshold seconds, bonus); every tier passed is added
DURATION_TIERS = ((30, 10), (120, 15), (300, 20))

EVENT_POINTS = 3
EVENT_CAP = 20

RETURNING_BONUS = 15
CONTACT_BONUS = 20
PRICING_BONUS = 25

CONTACT_SIGNALS = ("contact", "about")
PRICING_SIGNALS = ("pricing",)

HOT_THRESHOLD = 80
WARM_THRESHOLD = 60

HIGH_ENGAGEMENT_PAGES = 5
HIGH_CONFIDENCE = 0.8
LONG_SESSION_SECONDS = 300


@dataclass
class LeadHistory:
    """Behavioral history a score is computed from"""
    page_urls: List[str] = field(default_factory=list)
    event_count: int = 0
    start_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    returning: bool = False

    @property
    def duration_seconds(self) -> float:
        if self.start_time is None or self.last_activity is None:
            return 0.0
        return (self.last_activity - self.start_time).total_seconds()

    @classmethod
    def from_session(cls, session: VisitorSession, returning: bool = False) -> "LeadHistory":
        return cls(
            page_urls=[page.url for page in session.pages],
            event_count=len(session.events),
            start_time=session.start_time,
            last_activity=session.last_activity,
            returning=returning or bool(session.visitor_id),
        )


def _any_url_contains(urls: Sequence[str], signals: Sequence[str]) -> bool:
    for url in urls:
        lowered = (url or "").lower()
        if any(signal in lowered for signal in signals):
            return True
    return False


def calculate_lead_score(history: LeadHistory) -> int:
    """Score a behavioral history into [0, 100]"""
    score = BASE_SCORE

    pages = len(history.page_urls)
    if pages > 1:
        score += min(pages * PAGE_POINTS, PAGE_CAP)

    duration = history.duration_seconds
    for threshold, bonus in DURATION_TIERS:
        if duration > threshold:
            score += bonus

    if history.event_count > 0:
        score += min(history.event_count * EVENT_POINTS, EVENT_CAP)

    if history.returning:
        score += RETURNING_BONUS

    if _any_url_contains(history.page_urls, CONTACT_SIGNALS):
        score += CONTACT_BONUS
    if _any_url_contains(history.page_urls, PRICING_SIGNALS):
        score += PRICING_BONUS

    return min(score, MAX_SCORE)


def classify(score: int) -> LeadStatus:
    if score >= HOT_THRESHOLD:
        return LeadStatus.HOT
    if score >= WARM_THRESHOLD:
        return LeadStatus.WARM
    return LeadStatus.COLD


def generate_tags(
    history: LeadHistory,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    confidence: float = 0.0,
) -> List[str]:
    """Dashboard tags for a company, derived from its latest scored session"""
    tags = []
    if email:
        tags.append("Has Email")
    if phone:
        tags.append("Has Phone")
    if len(history.page_urls) >= HIGH_ENGAGEMENT_PAGES:
        tags.append("High Engagement")
    if confidence > HIGH_CONFIDENCE:
        tags.append("High Confidence")
    if history.duration_seconds > LONG_SESSION_SECONDS:
        tags.append("Long Session")
    return tags
