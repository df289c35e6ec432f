"""
Tests for the enrichment fan-out, merge and persistence decision.
"""

import time
from unittest.mock import AsyncMock, patch

import pytest

from visitor_intel.core.config import Settings
from visitor_intel.schemas.company import EnrichmentResult, Location
from visitor_intel.schemas.visitor import SessionSeed
from visitor_intel.services.adapters.base import LookupContext
from visitor_intel.services.enrichment_service import EnrichmentService, merge_results

from tests.conftest import T0, StaticAdapter

TENANT = "tenant-a"
SESSION = "0123456789abcdef"


async def seed_session(session_store, domain="acme.com"):
    return await session_store.get_or_create(TENANT, SESSION, SessionSeed(domain=domain, start_time=T0))


class TestMergeResults:

    def test_priority_order_wins_per_field(self):
        merged = merge_results("acme.com", [
            ("ip", EnrichmentResult(name="Acme", confidence=0.9)),
            ("domain", EnrichmentResult(name="AcmeCo", industry="Tech", confidence=0.9)),
            ("email", None),
            ("directory", None),
        ])

        assert merged.info.name == "Acme"
        assert merged.info.industry == "Tech"
        assert merged.confidence == pytest.approx(0.9)
        assert merged.sources == ["ip", "domain"]
        assert merged.info.enrichment.sources == ["ip", "domain"]

    def test_later_source_never_replaces_filled_field(self):
        merged = merge_results("acme.com", [
            ("ip", EnrichmentResult(name="Acme ISP Block", confidence=0.1)),
            ("domain", EnrichmentResult(name="Acme", confidence=1.0)),
        ])

        assert merged.info.name == "Acme ISP Block"

    def test_conflicting_industry_takes_highest_priority_source(self):
        merged = merge_results("acme.com", [
            ("ip", None),
            ("domain", EnrichmentResult(industry="Software", confidence=0.4)),
            ("email", EnrichmentResult(industry="Retail", email="info@acme.com", confidence=0.95)),
        ])

        assert merged.info.industry == "Software"
        assert merged.info.email == "info@acme.com"

    def test_mean_counts_sources_whose_fields_all_lost(self):
        merged = merge_results("acme.com", [
            ("ip", EnrichmentResult(name="Acme", confidence=0.9)),
            ("domain", EnrichmentResult(name="AcmeCo", confidence=0.5)),
        ])

        assert merged.info.name == "Acme"
        assert merged.confidence == pytest.approx(0.7)

    def test_empty_location_does_not_block_later_source(self):
        merged = merge_results("acme.com", [
            ("ip", EnrichmentResult(name="Acme", location=Location(), confidence=0.7)),
            ("domain", EnrichmentResult(location=Location(city="Berlin", country="DE"), confidence=0.9)),
        ])

        assert merged.info.location.city == "Berlin"

    def test_no_results_means_zero_confidence(self):
        merged = merge_results("acme.com", [("ip", None), ("domain", None)])

        assert merged.confidence == 0.0
        assert merged.sources == []
        assert merged.info.name is None
        assert merged.info.domain == "acme.com"


class TestEnrichmentService:

    async def test_persists_above_threshold(self, session_store, company_service, acme_adapters, test_settings):
        await seed_session(session_store)
        service = EnrichmentService(acme_adapters, session_store, company_service, test_settings)

        company = await service.enrich(TENANT, SESSION, "acme.com", "8.8.8.8")

        assert company is not None
        assert company.tenant_id == TENANT
        assert company.name == "Acme"
        assert company.industry == "Tech"
        assert company.total_visits == 1
        assert company.enrichment.confidence == pytest.approx(0.9)
        assert company.enrichment.sources == ["ip", "domain"]

        session = await session_store.get(TENANT, SESSION)
        assert session.company_info.name == "Acme"

        for adapter in acme_adapters:
            assert adapter.calls == [LookupContext(ip="8.8.8.8", domain="acme.com")]

    @pytest.mark.parametrize("confidence", [0.2, 0.3])
    async def test_at_or_below_threshold_is_not_persisted(
        self, session_store, company_service, test_settings, confidence
    ):
        await seed_session(session_store)
        adapters = [StaticAdapter("ip", EnrichmentResult(name="Acme", confidence=confidence))]
        service = EnrichmentService(adapters, session_store, company_service, test_settings)

        assert await service.enrich(TENANT, SESSION, "acme.com", "8.8.8.8") is None

        session = await session_store.get(TENANT, SESSION)
        assert session.company_info is None
        assert await company_service.get_company(TENANT, "acme.com") is None

    async def test_no_source_answers(self, session_store, company_service, test_settings):
        await seed_session(session_store)
        adapters = [StaticAdapter("ip"), StaticAdapter("domain", error=RuntimeError("down"))]
        service = EnrichmentService(adapters, session_store, company_service, test_settings)

        assert await service.enrich(TENANT, SESSION, "acme.com", None) is None
        assert await company_service.list_companies(TENANT) == []

    async def test_already_enriched_session_is_skipped(
        self, session_store, company_service, acme_adapters, test_settings
    ):
        await seed_session(session_store)
        service = EnrichmentService(acme_adapters, session_store, company_service, test_settings)

        await service.enrich(TENANT, SESSION, "acme.com", "8.8.8.8")
        assert await service.enrich(TENANT, SESSION, "acme.com", "8.8.8.8") is None

        company = await company_service.get_company(TENANT, "acme.com")
        assert company.total_visits == 1
        assert len(acme_adapters[0].calls) == 1

    async def test_failed_upsert_releases_claim_and_raises(
        self, session_store, company_service, acme_adapters, test_settings
    ):
        await seed_session(session_store)
        service = EnrichmentService(acme_adapters, session_store, company_service, test_settings)

        with patch.object(company_service, "upsert", new=AsyncMock(side_effect=RuntimeError("write failed"))):
            with pytest.raises(RuntimeError):
                await service.enrich(TENANT, SESSION, "acme.com", "8.8.8.8")

        assert (await session_store.get(TENANT, SESSION)).company_info is None
        assert await service.enrich(TENANT, SESSION, "acme.com", "8.8.8.8") is not None

    async def test_unknown_session_is_skipped(self, session_store, company_service, acme_adapters, test_settings):
        service = EnrichmentService(acme_adapters, session_store, company_service, test_settings)

        assert await service.enrich(TENANT, "missing", "acme.com", "8.8.8.8") is None
        assert acme_adapters[0].calls == []

    async def test_deadline_cancels_slow_source(self, session_store, company_service):
        config = Settings(STORAGE_BACKEND="memory", ADAPTER_TIMEOUT_SECONDS=0.1, ENRICHMENT_DEADLINE_SECONDS=0.1)
        adapters = [
            StaticAdapter("ip", EnrichmentResult(name="Acme", confidence=0.8)),
            StaticAdapter("domain", EnrichmentResult(name="Late", confidence=1.0), delay=5, timeout=10),
        ]
        service = EnrichmentService(adapters, session_store, company_service, config)

        results = await service.gather_results(LookupContext(ip="8.8.8.8", domain="acme.com"))

        assert [name for name, _ in results] == ["ip", "domain"]
        assert results[0][1].name == "Acme"
        assert results[1][1] is None

    async def test_sources_run_concurrently(self, session_store, company_service, test_settings):
        adapters = [
            StaticAdapter(name, EnrichmentResult(name=name, confidence=0.5), delay=0.2)
            for name in ("ip", "domain", "email", "directory")
        ]
        service = EnrichmentService(adapters, session_store, company_service, test_settings)

        started = time.monotonic()
        merged = await service.merge("acme.com", "8.8.8.8")
        elapsed = time.monotonic() - started

        assert elapsed < 0.6
        assert merged.sources == ["ip", "domain", "email", "directory"]

    async def test_one_failing_source_does_not_affect_siblings(self, session_store, company_service, test_settings):
        adapters = [
            StaticAdapter("ip", error=ValueError("bad payload")),
            StaticAdapter("domain", EnrichmentResult(name="AcmeCo", confidence=0.9)),
        ]
        service = EnrichmentService(adapters, session_store, company_service, test_settings)

        merged = await service.merge("acme.com", "8.8.8.8")

        assert merged.info.name == "AcmeCo"
        assert merged.sources == ["domain"]

    async def test_no_adapters(self, session_store, company_service, test_settings):
        service = EnrichmentService([], session_store, company_service, test_settings)

        merged = await service.merge("acme.com", None)

        assert merged.confidence == 0.0
