"""
Service wiring
"""

from dataclasses import dataclass
from typing import List, Optional

import aiohttp
import structlog

from visitor_intel.core.config import Settings, settings as default_settings
from visitor_intel.core.database import ensure_indexes, get_database
from visitor_intel.services.adapters import SourceAdapter, build_default_adapters
from visitor_intel.services.company_service import (
    CompanyService,
    CompanyStore,
    InMemoryCompanyStore,
    MongoCompanyStore,
)
from visitor_intel.services.enrichment_service import EnrichmentService
from visitor_intel.services.session_store import InMemorySessionStore, MongoSessionStore, SessionStore
from visitor_intel.services.tracking_service import TrackingService

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    session_store: SessionStore
    company_service: CompanyService
    enrichment_service: EnrichmentService
    tracking_service: TrackingService


def build_services(
    session_store: SessionStore,
    company_store: CompanyStore,
    adapters: List[SourceAdapter],
    config: Optional[Settings] = None,
) -> Services:
    config = config or default_settings
    company_service = CompanyService(company_store)
    enrichment_service = EnrichmentService(adapters, session_store, company_service, config)
    tracking_service = TrackingService(session_store, enrichment_service, company_service)
    return Services(
        session_store=session_store,
        company_service=company_service,
        enrichment_service=enrichment_service,
        tracking_service=tracking_service,
    )


async def create_services(
    config: Optional[Settings] = None,
    http_session: Optional[aiohttp.ClientSession] = None,
) -> Services:
    """Build the services for the configured storage backend"""
    config = config or default_settings
    adapters = build_default_adapters(config, http_session)

    if config.STORAGE_BACKEND == "memory":
        logger.info("Using in-memory storage")
        return build_services(InMemorySessionStore(), InMemoryCompanyStore(), adapters, config)

    if config.STORAGE_BACKEND != "mongodb":
        raise ValueError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND}")

    db = get_database(config)
    await ensure_indexes(db, config)
    return build_services(
        MongoSessionStore(db[config.SESSIONS_COLLECTION]),
        MongoCompanyStore(db[config.COMPANIES_COLLECTION]),
        adapters,
        config,
    )
