"""
Shared fixtures for the visitor intelligence tests.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest

from visitor_intel.core.config import Settings
from visitor_intel.schemas.company import EnrichmentResult
from visitor_intel.services.adapters.base import LookupContext, SourceAdapter
from visitor_intel.services.company_service import CompanyService, InMemoryCompanyStore
from visitor_intel.services.container import build_services
from visitor_intel.services.session_store import InMemorySessionStore

T0 = datetime(2025, 3, 14, 9, 0, 0, tzinfo=timezone.utc)


class StaticAdapter(SourceAdapter):
    """Adapter that answers from memory, optionally slowly or by failing."""

    def __init__(
        self,
        name: str,
        result: Optional[EnrichmentResult] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        **kwargs,
    ):
        self.name = name
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = []
        super().__init__(**kwargs)

    async def _lookup(self, context: LookupContext) -> Optional[EnrichmentResult]:
        self.calls.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def test_settings():
    return Settings(
        STORAGE_BACKEND="memory",
        ADAPTER_TIMEOUT_SECONDS=1.0,
        ENRICHMENT_DEADLINE_SECONDS=1.5,
        ENRICHMENT_CONFIDENCE_THRESHOLD=0.3,
    )


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def company_store():
    return InMemoryCompanyStore()


@pytest.fixture
def company_service(company_store):
    return CompanyService(company_store)


@pytest.fixture
def acme_adapters():
    """IP and domain sources that both know Acme; email and directory find nothing."""
    return [
        StaticAdapter("ip", EnrichmentResult(name="Acme", confidence=0.9)),
        StaticAdapter("domain", EnrichmentResult(name="AcmeCo", industry="Tech", confidence=0.9)),
        StaticAdapter("email"),
        StaticAdapter("directory"),
    ]


@pytest.fixture
def services(session_store, company_store, acme_adapters, test_settings):
    return build_services(session_store, company_store, acme_adapters, test_settings)
