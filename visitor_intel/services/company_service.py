"""
Tenant-scoped company records

One record per (tenant_id, domain). A visit increments the counter, refreshes
last_visit and fills only the fields that are still empty; fields that are
already set are never overwritten.

The stored score is the highest session score the company has reached, so a
short return visit never demotes a lead. Status is always classify(score)
and tags accumulate across sessions.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from visitor_intel.core.exceptions import ConcurrentUpdateConflict, require_tenant
from visitor_intel.schemas.common import as_utc, utcnow
from visitor_intel.schemas.company import PROFILE_FIELDS, CompanyInfo, CompanyProfile, LeadStatus
from visitor_intel.schemas.visitor import VisitorSession
from visitor_intel.services.lead_scoring import (
    HOT_THRESHOLD,
    WARM_THRESHOLD,
    LeadHistory,
    calculate_lead_score,
    classify,
    generate_tags,
)

logger = structlog.get_logger(__name__)


def present_fields(info: CompanyInfo) -> Dict[str, Any]:
    """Profile fields the info actually carries"""
    fields = {}
    for field in PROFILE_FIELDS:
        value = getattr(info, field)
        if field == "location":
            if value is not None and not value.is_empty():
                fields[field] = value.model_dump()
        elif value:
            fields[field] = value
    return fields


class CompanyStore(ABC):
    """Persistence for company records; every write is atomic per key"""

    @abstractmethod
    async def upsert_visit(self, tenant_id: str, info: CompanyInfo, seen_at: datetime) -> CompanyProfile:
        """Create the record or count one more visit, filling empty fields"""

    @abstractmethod
    async def set_score(
        self, tenant_id: str, domain: str, score: int,
        tags: List[str], seen_at: Optional[datetime] = None,
    ) -> Optional[CompanyProfile]:
        """Raise the stored score to at least `score`, re-derive status and add tags"""

    @abstractmethod
    async def get(self, tenant_id: str, domain: str) -> Optional[CompanyProfile]:
        ...

    @abstractmethod
    async def list(
        self, tenant_id: str, status: Optional[LeadStatus] = None,
        min_score: Optional[int] = None, limit: int = 100,
    ) -> List[CompanyProfile]:
        ...


class MongoCompanyStore(CompanyStore):
    """Company store backed by a MongoDB collection"""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    @staticmethod
    def _visit_pipeline(tenant_id: str, info: CompanyInfo, seen_at: datetime) -> List[Dict[str, Any]]:
        # Single-document pipeline update: the increment and the conditional
        # field sets are applied together by the server.
        existing_sources = {"$ifNull": ["$enrichment.sources", []]}
        new_sources = {
            "$filter": {
                "input": {"$literal": info.enrichment.sources},
                "cond": {"$not": [{"$in": ["$$this", existing_sources]}]},
            }
        }
        stage = {
            "tenant_id": {"$literal": tenant_id},
            "domain": {"$literal": info.domain},
            "total_visits": {"$add": [{"$ifNull": ["$total_visits", 0]}, 1]},
            "last_visit": {"$max": ["$last_visit", {"$literal": seen_at}]},
            "score": {"$ifNull": ["$score", 0]},
            "status": {"$ifNull": ["$status", LeadStatus.COLD.value]},
            "tags": {"$ifNull": ["$tags", []]},
            "enrichment.sources": {"$concatArrays": [existing_sources, new_sources]},
            "enrichment.confidence": {
                "$ifNull": ["$enrichment.confidence", {"$literal": info.enrichment.confidence}]
            },
            "enrichment.enriched_at": {
                "$ifNull": ["$enrichment.enriched_at", {"$literal": info.enrichment.enriched_at}]
            },
        }
        for field, value in present_fields(info).items():
            stage[field] = {"$ifNull": [f"${field}", {"$literal": value}]}
        return [{"$set": stage}]

    async def upsert_visit(self, tenant_id: str, info: CompanyInfo, seen_at: datetime) -> CompanyProfile:
        tenant_id = require_tenant(tenant_id)
        key = {"tenant_id": tenant_id, "domain": info.domain}
        pipeline = self._visit_pipeline(tenant_id, info, seen_at)

        # Two first-sight upserts can race on the unique key; the loser retries
        # as an update of the winner's document.
        for attempt in range(2):
            try:
                doc = await self.collection.find_one_and_update(
                    key,
                    pipeline,
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                    projection={"_id": False},
                )
                return CompanyProfile(**doc)
            except DuplicateKeyError:
                logger.info("Company upsert raced, retrying", tenant_id=tenant_id, domain=info.domain, attempt=attempt)
        raise ConcurrentUpdateConflict(tenant_id, info.domain)

    @staticmethod
    def _score_pipeline(score: int, tags: List[str], seen_at: Optional[datetime]) -> List[Dict[str, Any]]:
        existing_tags = {"$ifNull": ["$tags", []]}
        first: Dict[str, Any] = {
            "score": {"$max": [{"$ifNull": ["$score", 0]}, {"$literal": score}]},
            "tags": {
                "$concatArrays": [
                    existing_tags,
                    {
                        "$filter": {
                            "input": {"$literal": tags},
                            "cond": {"$not": [{"$in": ["$$this", existing_tags]}]},
                        }
                    },
                ]
            },
        }
        if seen_at is not None:
            first["last_visit"] = {"$max": ["$last_visit", {"$literal": seen_at}]}
        # Status follows the stored score, so it is derived in a second stage
        status = {
            "$switch": {
                "branches": [
                    {"case": {"$gte": ["$score", HOT_THRESHOLD]}, "then": LeadStatus.HOT.value},
                    {"case": {"$gte": ["$score", WARM_THRESHOLD]}, "then": LeadStatus.WARM.value},
                ],
                "default": LeadStatus.COLD.value,
            }
        }
        return [{"$set": first}, {"$set": {"status": status}}]

    async def set_score(
        self, tenant_id: str, domain: str, score: int,
        tags: List[str], seen_at: Optional[datetime] = None,
    ) -> Optional[CompanyProfile]:
        doc = await self.collection.find_one_and_update(
            {"tenant_id": require_tenant(tenant_id), "domain": domain},
            self._score_pipeline(score, tags, seen_at),
            return_document=ReturnDocument.AFTER,
            projection={"_id": False},
        )
        return CompanyProfile(**doc) if doc else None

    async def get(self, tenant_id: str, domain: str) -> Optional[CompanyProfile]:
        doc = await self.collection.find_one(
            {"tenant_id": require_tenant(tenant_id), "domain": domain}, {"_id": False}
        )
        return CompanyProfile(**doc) if doc else None

    async def list(
        self, tenant_id: str, status: Optional[LeadStatus] = None,
        min_score: Optional[int] = None, limit: int = 100,
    ) -> List[CompanyProfile]:
        query: Dict[str, Any] = {"tenant_id": require_tenant(tenant_id)}
        if status is not None:
            query["status"] = LeadStatus(status).value
        if min_score is not None:
            query["score"] = {"$gte": min_score}
        cursor = (
            self.collection.find(query, {"_id": False})
            .sort([("last_visit", DESCENDING), ("score", DESCENDING)])
            .limit(limit)
        )
        return [CompanyProfile(**doc) async for doc in cursor]


class InMemoryCompanyStore(CompanyStore):
    """
    Process-local company store.

    Each read-modify-write below runs without awaiting, so it cannot
    interleave with another coroutine on the same event loop.
    """

    def __init__(self):
        self._companies: Dict[Tuple[str, str], CompanyProfile] = {}

    async def upsert_visit(self, tenant_id: str, info: CompanyInfo, seen_at: datetime) -> CompanyProfile:
        key = (require_tenant(tenant_id), info.domain)
        company = self._companies.get(key)
        if company is None:
            company = CompanyProfile(
                tenant_id=key[0],
                domain=info.domain,
                enrichment=info.enrichment.model_copy(deep=True),
                status=LeadStatus.COLD,
            )
            company.enrichment.sources = []
            self._companies[key] = company

        company.total_visits += 1
        company.last_visit = seen_at if company.last_visit is None else max(company.last_visit, seen_at)
        for field in PROFILE_FIELDS:
            if getattr(company, field) is None:
                value = getattr(info, field)
                if field == "location" and value is not None and value.is_empty():
                    continue
                if value:
                    setattr(company, field, value.model_copy() if field == "location" else value)
        for source in info.enrichment.sources:
            if source not in company.enrichment.sources:
                company.enrichment.sources.append(source)
        return company.model_copy(deep=True)

    async def set_score(
        self, tenant_id: str, domain: str, score: int,
        tags: List[str], seen_at: Optional[datetime] = None,
    ) -> Optional[CompanyProfile]:
        company = self._companies.get((require_tenant(tenant_id), domain))
        if company is None:
            return None
        company.score = max(company.score, score)
        company.status = classify(company.score)
        company.tags += [tag for tag in tags if tag not in company.tags]
        if seen_at is not None:
            company.last_visit = seen_at if company.last_visit is None else max(company.last_visit, seen_at)
        return company.model_copy(deep=True)

    async def get(self, tenant_id: str, domain: str) -> Optional[CompanyProfile]:
        company = self._companies.get((require_tenant(tenant_id), domain))
        return company.model_copy(deep=True) if company else None

    async def list(
        self, tenant_id: str, status: Optional[LeadStatus] = None,
        min_score: Optional[int] = None, limit: int = 100,
    ) -> List[CompanyProfile]:
        tenant_id = require_tenant(tenant_id)
        companies = [
            c for (tenant, _), c in self._companies.items()
            if tenant == tenant_id
            and (status is None or c.status == LeadStatus(status))
            and (min_score is None or c.score >= min_score)
        ]
        companies.sort(key=lambda c: (c.last_visit or datetime.min.replace(tzinfo=timezone.utc), c.score), reverse=True)
        return [c.model_copy(deep=True) for c in companies[:limit]]


class CompanyService:
    """Company upsert plus score maintenance"""

    def __init__(self, store: CompanyStore):
        self.store = store

    async def upsert(
        self,
        tenant_id: str,
        info: CompanyInfo,
        session: Optional[VisitorSession] = None,
    ) -> CompanyProfile:
        """Record one visit for (tenant, domain) and rescore"""
        tenant_id = require_tenant(tenant_id)
        seen_at = as_utc(session.last_activity) if session else utcnow()
        company = await self.store.upsert_visit(tenant_id, info, seen_at)
        logger.info(
            "Company visit recorded",
            tenant_id=tenant_id,
            domain=company.domain,
            total_visits=company.total_visits,
        )
        return await self._apply_score(company, session)

    async def rescore(self, tenant_id: str, domain: str, session: VisitorSession) -> Optional[CompanyProfile]:
        """Score the latest session without counting a visit; the stored score only rises"""
        company = await self.store.get(require_tenant(tenant_id), domain)
        if company is None:
            return None
        return await self._apply_score(company, session, seen_at=as_utc(session.last_activity))

    async def _apply_score(
        self,
        company: CompanyProfile,
        session: Optional[VisitorSession],
        seen_at: Optional[datetime] = None,
    ) -> CompanyProfile:
        returning = company.total_visits > 1
        if session is not None:
            history = LeadHistory.from_session(session, returning=returning)
        else:
            history = LeadHistory(returning=returning)

        score = calculate_lead_score(history)
        tags = generate_tags(
            history,
            email=company.email,
            phone=company.phone,
            confidence=company.enrichment.confidence,
        )
        updated = await self.store.set_score(company.tenant_id, company.domain, score, tags, seen_at)
        return updated or company

    async def get_company(self, tenant_id: str, domain: str) -> Optional[CompanyProfile]:
        return await self.store.get(require_tenant(tenant_id), domain)

    async def list_companies(
        self,
        tenant_id: str,
        status: Optional[LeadStatus] = None,
        min_score: Optional[int] = None,
        limit: int = 100,
    ) -> List[CompanyProfile]:
        return await self.store.list(require_tenant(tenant_id), status=status, min_score=min_score, limit=limit)

    async def hot_leads(self, tenant_id: str, limit: int = 100) -> List[CompanyProfile]:
        return await self.list_companies(tenant_id, status=LeadStatus.HOT, limit=limit)
