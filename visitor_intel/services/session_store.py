"""
Visitor session storage

Sessions are keyed by (tenant_id, session_id). Pages and events are
append-only and nothing here ever removes history.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from visitor_intel.core.exceptions import require_tenant
from visitor_intel.schemas.company import CompanyInfo
from visitor_intel.schemas.visitor import PageVisit, SessionEvent, SessionSeed, VisitorSession

logger = structlog.get_logger(__name__)


def _bson_datetime(value: datetime) -> datetime:
    # BSON dates keep milliseconds only
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


class SessionStore(ABC):
    """In-progress visitor sessions, namespaced by tenant"""

    @abstractmethod
    async def get(self, tenant_id: str, session_id: str) -> Optional[VisitorSession]:
        ...

    @abstractmethod
    async def get_or_create(self, tenant_id: str, session_id: str, seed: SessionSeed) -> VisitorSession:
        ...

    @abstractmethod
    async def append_page(self, tenant_id: str, session_id: str, page: PageVisit) -> None:
        ...

    @abstractmethod
    async def append_event(self, tenant_id: str, session_id: str, event: SessionEvent) -> None:
        ...

    @abstractmethod
    async def set_company_info(self, tenant_id: str, session_id: str, info: CompanyInfo) -> bool:
        """Attach enrichment once; returns False if the session already had it"""

    @abstractmethod
    async def release_company_info(self, tenant_id: str, session_id: str, enriched_at: datetime) -> bool:
        """Undo a claim made by set_company_info, only if it is still that claim"""

    @abstractmethod
    async def set_domain(self, tenant_id: str, session_id: str, domain: str) -> bool:
        """Record the visited domain on a session that started without one"""

    @abstractmethod
    async def list_sessions(
        self, tenant_id: str, domain: Optional[str] = None, limit: int = 100
    ) -> List[VisitorSession]:
        ...


class MongoSessionStore(SessionStore):
    """Session store backed by a MongoDB collection"""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    @staticmethod
    def _key(tenant_id: str, session_id: str) -> Dict[str, str]:
        return {"tenant_id": require_tenant(tenant_id), "session_id": session_id}

    async def get(self, tenant_id: str, session_id: str) -> Optional[VisitorSession]:
        doc = await self.collection.find_one(self._key(tenant_id, session_id), {"_id": False})
        return VisitorSession(**doc) if doc else None

    async def get_or_create(self, tenant_id: str, session_id: str, seed: SessionSeed) -> VisitorSession:
        key = self._key(tenant_id, session_id)
        on_insert = {
            **seed.model_dump(),
            "pages": [],
            "events": [],
            "company_info": None,
            "last_activity": seed.start_time,
        }
        try:
            doc = await self.collection.find_one_and_update(
                key,
                {"$setOnInsert": on_insert},
                upsert=True,
                return_document=ReturnDocument.AFTER,
                projection={"_id": False},
            )
        except DuplicateKeyError:
            # Lost the insert race to a concurrent event for the same session
            doc = await self.collection.find_one(key, {"_id": False})
        return VisitorSession(**doc)

    async def append_page(self, tenant_id: str, session_id: str, page: PageVisit) -> None:
        await self.collection.update_one(
            self._key(tenant_id, session_id),
            {
                "$push": {"pages": page.model_dump()},
                "$max": {"last_activity": page.timestamp},
            },
        )

    async def append_event(self, tenant_id: str, session_id: str, event: SessionEvent) -> None:
        await self.collection.update_one(
            self._key(tenant_id, session_id),
            {
                "$push": {"events": event.model_dump()},
                "$max": {"last_activity": event.timestamp},
            },
        )

    async def set_company_info(self, tenant_id: str, session_id: str, info: CompanyInfo) -> bool:
        result = await self.collection.update_one(
            {**self._key(tenant_id, session_id), "company_info": None},
            {"$set": {"company_info": info.model_dump()}},
        )
        return result.modified_count == 1

    async def release_company_info(self, tenant_id: str, session_id: str, enriched_at: datetime) -> bool:
        result = await self.collection.update_one(
            {
                **self._key(tenant_id, session_id),
                "company_info.enrichment.enriched_at": _bson_datetime(enriched_at),
            },
            {"$set": {"company_info": None}},
        )
        return result.modified_count == 1

    async def set_domain(self, tenant_id: str, session_id: str, domain: str) -> bool:
        result = await self.collection.update_one(
            {**self._key(tenant_id, session_id), "domain": None},
            {"$set": {"domain": domain}},
        )
        return result.modified_count == 1

    async def list_sessions(
        self, tenant_id: str, domain: Optional[str] = None, limit: int = 100
    ) -> List[VisitorSession]:
        query = {"tenant_id": require_tenant(tenant_id)}
        if domain:
            query["domain"] = domain
        cursor = self.collection.find(query, {"_id": False}).sort("start_time", DESCENDING).limit(limit)
        return [VisitorSession(**doc) async for doc in cursor]


class InMemorySessionStore(SessionStore):
    """Process-local session store for tests and local development"""

    def __init__(self):
        self._sessions: Dict[Tuple[str, str], VisitorSession] = {}

    async def get(self, tenant_id: str, session_id: str) -> Optional[VisitorSession]:
        session = self._sessions.get((require_tenant(tenant_id), session_id))
        return session.model_copy(deep=True) if session else None

    async def get_or_create(self, tenant_id: str, session_id: str, seed: SessionSeed) -> VisitorSession:
        key = (require_tenant(tenant_id), session_id)
        session = self._sessions.get(key)
        if session is None:
            session = VisitorSession(
                tenant_id=key[0],
                session_id=session_id,
                last_activity=seed.start_time,
                **seed.model_dump(),
            )
            self._sessions[key] = session
        return session.model_copy(deep=True)

    def _require(self, tenant_id: str, session_id: str) -> Optional[VisitorSession]:
        session = self._sessions.get((require_tenant(tenant_id), session_id))
        if session is None:
            logger.warning("Append to unknown session", tenant_id=tenant_id, session_id=session_id)
        return session

    async def append_page(self, tenant_id: str, session_id: str, page: PageVisit) -> None:
        session = self._require(tenant_id, session_id)
        if session is not None:
            session.pages.append(page.model_copy())
            session.last_activity = max(session.last_activity, page.timestamp)

    async def append_event(self, tenant_id: str, session_id: str, event: SessionEvent) -> None:
        session = self._require(tenant_id, session_id)
        if session is not None:
            session.events.append(event.model_copy(deep=True))
            session.last_activity = max(session.last_activity, event.timestamp)

    async def set_company_info(self, tenant_id: str, session_id: str, info: CompanyInfo) -> bool:
        session = self._require(tenant_id, session_id)
        if session is None or session.company_info is not None:
            return False
        session.company_info = info.model_copy(deep=True)
        return True

    async def release_company_info(self, tenant_id: str, session_id: str, enriched_at: datetime) -> bool:
        session = self._require(tenant_id, session_id)
        if session is None or session.company_info is None:
            return False
        if session.company_info.enrichment.enriched_at != enriched_at:
            return False
        session.company_info = None
        return True

    async def set_domain(self, tenant_id: str, session_id: str, domain: str) -> bool:
        session = self._require(tenant_id, session_id)
        if session is None or session.domain is not None:
            return False
        session.domain = domain
        return True

    async def list_sessions(
        self, tenant_id: str, domain: Optional[str] = None, limit: int = 100
    ) -> List[VisitorSession]:
        tenant_id = require_tenant(tenant_id)
        sessions = [
            s for (tenant, _), s in self._sessions.items()
            if tenant == tenant_id and (not domain or s.domain == domain)
        ]
        sessions.sort(key=lambda s: s.start_time, reverse=True)
        return [s.model_copy(deep=True) for s in sessions[:limit]]
