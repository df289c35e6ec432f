"""
Per-event tracking pipeline

tracking event -> session id -> session append -> (first event with a
domain) enrichment -> company upsert -> score. Later events in an enriched
session only rescore the company.
"""

from typing import List, Optional

import structlog

from visitor_intel.core.exceptions import MissingTenantContext, require_tenant
from visitor_intel.schemas.company import CompanyProfile
from visitor_intel.schemas.tracking import TrackingEvent, TrackingResult
from visitor_intel.schemas.visitor import PageVisit, SessionEvent, SessionSeed, VisitorSession, VisitorSummary
from visitor_intel.services.company_service import CompanyService
from visitor_intel.services.enrichment_service import EnrichmentService
from visitor_intel.services.identity import resolve_session_id
from visitor_intel.services.session_store import SessionStore
from visitor_intel.services.user_agent import classify_user_agent

logger = structlog.get_logger(__name__)


class TrackingService:
    """Drives one tracking event through identity, session, enrichment and scoring"""

    def __init__(
        self,
        session_store: SessionStore,
        enrichment_service: EnrichmentService,
        company_service: CompanyService,
    ):
        self.session_store = session_store
        self.enrichment_service = enrichment_service
        self.company_service = company_service

    async def process_event(self, event: TrackingEvent) -> TrackingResult:
        try:
            tenant_id = require_tenant(event.tenant_id)
        except MissingTenantContext:
            logger.warning("Rejected tracking event without tenant", domain=event.domain)
            raise

        session_id = resolve_session_id(event.ip, event.user_agent, event.timestamp)
        session = await self.session_store.get_or_create(
            tenant_id,
            session_id,
            SessionSeed(
                domain=event.domain,
                ip_address=event.ip,
                user_agent_raw=event.user_agent,
                referrer=event.referrer,
                visitor_id=event.visitor_id,
                start_time=event.timestamp,
            ),
        )
        if session.domain is None and event.domain:
            await self.session_store.set_domain(tenant_id, session_id, event.domain)

        if event.is_page_view:
            await self.session_store.append_page(
                tenant_id,
                session_id,
                PageVisit(
                    url=event.url or "/",
                    title=event.data.get("title") or "Unknown",
                    timestamp=event.timestamp,
                ),
            )
        else:
            await self.session_store.append_event(
                tenant_id,
                session_id,
                SessionEvent(event_type=event.event_type, timestamp=event.timestamp, payload=event.data),
            )

        result = TrackingResult(tenant_id=tenant_id, session_id=session_id)
        if session.company_info is None and event.domain:
            result.company = await self._enrich(tenant_id, session_id, event)
            result.enriched = result.company is not None
        elif session.company_info is not None:
            result.company = await self._rescore(tenant_id, session_id, session.company_info.domain)
        return result

    async def _enrich(self, tenant_id: str, session_id: str, event: TrackingEvent) -> Optional[CompanyProfile]:
        # Enrichment problems never fail the tracking call
        try:
            return await self.enrichment_service.enrich(tenant_id, session_id, event.domain, event.ip)
        except Exception as e:
            logger.error(
                "Enrichment failed",
                tenant_id=tenant_id,
                session_id=session_id,
                domain=event.domain,
                error=str(e),
                exc_info=True,
            )
            return None

    async def _rescore(self, tenant_id: str, session_id: str, domain: str) -> Optional[CompanyProfile]:
        session = await self.session_store.get(tenant_id, session_id)
        if session is None:
            return None
        try:
            return await self.company_service.rescore(tenant_id, domain, session)
        except Exception as e:
            logger.error(
                "Rescoring failed",
                tenant_id=tenant_id,
                session_id=session_id,
                domain=domain,
                error=str(e),
                exc_info=True,
            )
            return None

    async def list_visitors(
        self, tenant_id: str, domain: Optional[str] = None, limit: int = 100
    ) -> List[VisitorSummary]:
        sessions = await self.session_store.list_sessions(require_tenant(tenant_id), domain=domain, limit=limit)
        return [summarize_session(session) for session in sessions]


def summarize_session(session: VisitorSession) -> VisitorSummary:
    ua = classify_user_agent(session.user_agent_raw)
    info = session.company_info
    return VisitorSummary(
        session_id=session.session_id,
        tenant_id=session.tenant_id,
        domain=session.domain,
        start_time=session.start_time,
        last_activity=session.last_activity,
        duration=round(session.duration_seconds),
        page_views=len(session.pages),
        event_count=len(session.events),
        browser=ua["browser"],
        device=ua["device"],
        os=ua["os"],
        company_name=(info.name or info.domain) if info else None,
        confidence=info.enrichment.confidence if info else None,
    )
