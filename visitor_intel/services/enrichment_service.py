"""
Company enrichment

Fans out to every source adapter at once, waits for all of them to settle
(or for the outer deadline), then merges their partial profiles.

Merge rule: results are walked in adapter priority order (IP, domain, email,
directory) and each field is taken from the first source that supplies it.
A later source never replaces a filled field, whatever its confidence.
The aggregate confidence is the plain mean over every source that returned
a result, including sources whose fields all lost to earlier ones.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from visitor_intel.core.config import Settings, settings as default_settings
from visitor_intel.core.exceptions import require_tenant
from visitor_intel.schemas.common import utcnow
from visitor_intel.schemas.company import (
    PROFILE_FIELDS,
    CompanyInfo,
    CompanyProfile,
    EnrichmentMeta,
    EnrichmentResult,
)
from visitor_intel.services.adapters.base import LookupContext, SourceAdapter
from visitor_intel.services.company_service import CompanyService
from visitor_intel.services.session_store import SessionStore

logger = structlog.get_logger(__name__)


@dataclass
class MergedEnrichment:
    """Outcome of one fan-out, before the persistence decision"""
    info: CompanyInfo
    sources: List[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def source_count(self) -> int:
        return len(self.sources)


def _has_value(field_name: str, value) -> bool:
    if field_name == "location":
        return value is not None and not value.is_empty()
    return bool(value)


def merge_results(
    domain: str, results: Sequence[Tuple[str, Optional[EnrichmentResult]]]
) -> MergedEnrichment:
    """Fill-if-absent merge over results given in priority order"""
    info = CompanyInfo(domain=domain)
    sources: List[str] = []
    total_confidence = 0.0

    for source_name, result in results:
        if result is None:
            continue
        if source_name not in sources:
            sources.append(source_name)
        for field_name in PROFILE_FIELDS:
            value = getattr(result, field_name)
            if _has_value(field_name, value) and not _has_value(field_name, getattr(info, field_name)):
                setattr(info, field_name, value)
        total_confidence += result.confidence

    # No contributing source means no confidence, never a division error
    confidence = total_confidence / len(sources) if sources else 0.0
    info.enrichment = EnrichmentMeta(sources=sources, confidence=confidence, enriched_at=utcnow())
    return MergedEnrichment(info=info, sources=sources, confidence=confidence)


class EnrichmentService:
    """Enrichment aggregator"""

    def __init__(
        self,
        adapters: List[SourceAdapter],
        session_store: SessionStore,
        company_service: CompanyService,
        config: Optional[Settings] = None,
    ):
        config = config or default_settings
        self.adapters = adapters
        self.session_store = session_store
        self.company_service = company_service
        self.deadline = config.ENRICHMENT_DEADLINE_SECONDS
        self.threshold = config.ENRICHMENT_CONFIDENCE_THRESHOLD

    async def gather_results(self, context: LookupContext) -> List[Tuple[str, Optional[EnrichmentResult]]]:
        """Run all adapters concurrently; anything unfinished at the deadline counts as None"""
        if not self.adapters:
            return []
        tasks: Dict[str, asyncio.Task] = {
            adapter.name: asyncio.ensure_future(adapter.lookup(context)) for adapter in self.adapters
        }
        done, pending = await asyncio.wait(tasks.values(), timeout=self.deadline)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "Enrichment deadline reached",
                deadline=self.deadline,
                pending=[name for name, task in tasks.items() if task in pending],
            )

        results: List[Tuple[str, Optional[EnrichmentResult]]] = []
        for name, task in tasks.items():
            value = None
            if task in done and not task.cancelled():
                error = task.exception()
                if error is not None:
                    logger.warning("Enrichment source raised", source=name, error=str(error))
                else:
                    value = task.result()
            results.append((name, value))
        return results

    async def merge(self, domain: str, ip: Optional[str]) -> MergedEnrichment:
        results = await self.gather_results(LookupContext(ip=ip, domain=domain))
        return merge_results(domain, results)

    async def enrich(
        self, tenant_id: str, session_id: str, domain: str, ip: Optional[str]
    ) -> Optional[CompanyProfile]:
        """
        Enrich the session's company and persist it when confident enough.

        Returns the persisted company, or None when confidence is at or below
        the threshold, when no source answered, or when the session was
        already enriched by a concurrent event. A failed company upsert
        releases the session claim and re-raises.
        """
        tenant_id = require_tenant(tenant_id)
        session = await self.session_store.get(tenant_id, session_id)
        if session is None or session.company_info is not None or not domain:
            return None

        merged = await self.merge(domain, ip)
        log = logger.bind(
            tenant_id=tenant_id,
            session_id=session_id,
            domain=domain,
            sources=merged.sources,
            confidence=round(merged.confidence, 3),
        )
        if not merged.confidence > self.threshold:
            log.info("Enrichment below confidence threshold")
            return None

        # Claim the session first so a session counts as at most one visit
        if not await self.session_store.set_company_info(tenant_id, session_id, merged.info):
            log.info("Session already enriched")
            return None

        session = await self.session_store.get(tenant_id, session_id)
        try:
            company = await self.company_service.upsert(tenant_id, merged.info, session)
        except Exception:
            # Release the claim so a later event retries enrichment
            released = await self.session_store.release_company_info(
                tenant_id, session_id, merged.info.enrichment.enriched_at
            )
            log.error("Company upsert failed after claim", claim_released=released)
            raise
        log.info("Company enriched", score=company.score, status=company.status.value)
        return company
