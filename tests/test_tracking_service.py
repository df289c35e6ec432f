"""
End-to-end tests for the tracking pipeline over in-memory stores.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from visitor_intel.core.exceptions import MissingTenantContext
from visitor_intel.schemas.company import LeadStatus
from visitor_intel.schemas.tracking import TrackingEvent
from visitor_intel.services.identity import resolve_session_id

from tests.conftest import T0

CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def event(**overrides) -> TrackingEvent:
    fields = {
        "tenant_id": "t1",
        "ip": "8.8.8.8",
        "user_agent": CHROME,
        "domain": "acme.com",
        "url": "/",
        "timestamp": T0,
    }
    fields.update(overrides)
    return TrackingEvent(**fields)


class TestTrackingService:

    async def test_first_event_enriches_company(self, services, session_store):
        result = await services.tracking_service.process_event(event(data={"title": "Home"}))

        assert result.enriched is True
        assert result.session_id == resolve_session_id("8.8.8.8", CHROME, T0)
        assert result.company.name == "Acme"
        assert result.company.industry == "Tech"
        assert result.company.total_visits == 1
        assert result.company.status == LeadStatus.COLD

        session = await session_store.get("t1", result.session_id)
        assert [(p.url, p.title) for p in session.pages] == [("/", "Home")]
        assert session.company_info.name == "Acme"

    async def test_same_day_events_rescore_without_new_visit(self, services, acme_adapters):
        tracking = services.tracking_service
        await tracking.process_event(event())
        second = await tracking.process_event(event(url="/pricing", timestamp=T0 + timedelta(seconds=60)))
        third = await tracking.process_event(event(url="/contact", timestamp=T0 + timedelta(seconds=130)))

        assert second.enriched is False
        assert second.company.score == 55
        assert third.company.score == 95
        assert third.company.status == LeadStatus.HOT
        assert third.company.total_visits == 1
        assert len(acme_adapters[0].calls) == 1

    async def test_replayed_event_is_not_a_new_visit(self, services, company_service):
        await services.tracking_service.process_event(event())
        await services.tracking_service.process_event(event())

        company = await company_service.get_company("t1", "acme.com")
        assert company.total_visits == 1

    async def test_concurrent_events_in_one_session_count_once(self, services, company_service):
        await asyncio.gather(*[
            services.tracking_service.process_event(event(url=f"/page-{i}")) for i in range(5)
        ])

        company = await company_service.get_company("t1", "acme.com")
        assert company.total_visits == 1

    async def test_next_day_is_a_returning_visit(self, services):
        await services.tracking_service.process_event(event())
        result = await services.tracking_service.process_event(event(timestamp=T0 + timedelta(days=1)))

        assert result.enriched is True
        assert result.company.total_visits == 2
        assert result.company.score == 25

    async def test_visitor_id_counts_as_returning(self, services):
        result = await services.tracking_service.process_event(event(visitor_id="v-42"))

        assert result.company.score == 25

    async def test_failed_company_write_leaves_session_retryable(self, services, company_store, session_store):
        with patch.object(company_store, "upsert_visit", new=AsyncMock(side_effect=RuntimeError("write failed"))):
            first = await services.tracking_service.process_event(event())

        assert first.enriched is False
        assert (await session_store.get("t1", first.session_id)).company_info is None

        retry = await services.tracking_service.process_event(event(url="/docs", timestamp=T0 + timedelta(seconds=20)))

        assert retry.enriched is True
        assert retry.company.total_visits == 1
        assert (await session_store.get("t1", retry.session_id)).company_info.name == "Acme"

    async def test_short_next_day_visit_keeps_hot_lead(self, services):
        tracking = services.tracking_service
        await tracking.process_event(event())
        await tracking.process_event(event(url="/pricing", timestamp=T0 + timedelta(seconds=200)))
        hot = await tracking.process_event(event(url="/contact", timestamp=T0 + timedelta(seconds=400)))
        assert hot.company.status == LeadStatus.HOT

        later = await tracking.process_event(event(timestamp=T0 + timedelta(days=1)))

        assert later.company.total_visits == 2
        assert later.company.score == 100
        assert later.company.status == LeadStatus.HOT

    async def test_domain_seen_after_first_event_is_recorded(self, services):
        tracking = services.tracking_service
        await tracking.process_event(event(domain=None))
        result = await tracking.process_event(event(url="/pricing", timestamp=T0 + timedelta(seconds=30)))

        assert result.enriched is True
        [summary] = await tracking.list_visitors("t1", domain="acme.com")
        assert summary.session_id == result.session_id
        assert summary.domain == "acme.com"

    async def test_missing_tenant_is_rejected(self, services, session_store):
        with pytest.raises(MissingTenantContext):
            await services.tracking_service.process_event(event(tenant_id=None))

        assert session_store._sessions == {}

    async def test_enrichment_failure_does_not_fail_tracking(self, services, session_store):
        with patch.object(
            services.enrichment_service, "enrich", new=AsyncMock(side_effect=RuntimeError("mongo down"))
        ):
            result = await services.tracking_service.process_event(event())

        assert result.enriched is False
        assert result.company is None
        assert len((await session_store.get("t1", result.session_id)).pages) == 1

    async def test_event_without_domain_skips_enrichment(self, services, acme_adapters):
        result = await services.tracking_service.process_event(event(domain=None))

        assert result.enriched is False
        assert all(adapter.calls == [] for adapter in acme_adapters)

    async def test_non_page_events_are_recorded_as_events(self, services, session_store):
        result = await services.tracking_service.process_event(
            event(event_type="form_submit", data={"form": "demo"})
        )

        session = await session_store.get("t1", result.session_id)
        assert session.pages == []
        assert session.events[0].event_type == "form_submit"
        assert session.events[0].payload == {"form": "demo"}

    async def test_untitled_page_defaults(self, services, session_store):
        result = await services.tracking_service.process_event(event(url=None, domain=None))

        session = await session_store.get("t1", result.session_id)
        assert (session.pages[0].url, session.pages[0].title) == ("/", "Unknown")

    async def test_tenants_never_see_each_other(self, services, company_service):
        await services.tracking_service.process_event(event(tenant_id="t1"))
        await services.tracking_service.process_event(event(tenant_id="t2"))

        assert (await company_service.get_company("t1", "acme.com")).total_visits == 1
        assert (await company_service.get_company("t2", "acme.com")).total_visits == 1
        assert len(await services.tracking_service.list_visitors("t1")) == 1

    async def test_list_visitors_summarizes_sessions(self, services):
        await services.tracking_service.process_event(event())
        await services.tracking_service.process_event(event(url="/docs", timestamp=T0 + timedelta(seconds=90)))

        [summary] = await services.tracking_service.list_visitors("t1")
        assert summary.page_views == 2
        assert summary.duration == 90
        assert summary.browser == "Chrome"
        assert summary.os == "Windows"
        assert summary.device == "Desktop"
        assert summary.company_name == "Acme"
        assert summary.confidence == pytest.approx(0.9)
