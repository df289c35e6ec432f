"""
Domain to company lookup (Clearbit company API)
"""

from typing import Any, Dict, Optional

from visitor_intel.schemas.company import EnrichmentResult, Location
from visitor_intel.services.adapters.base import LookupContext, SourceAdapter

DOMAIN_CONFIDENCE = 0.9


def map_employee_count(employees: Optional[int]) -> str:
    """Bucket an employee count"""
    if not employees:
        return "Unknown"
    if employees < 10:
        return "1-10"
    if employees < 50:
        return "11-50"
    if employees < 200:
        return "51-200"
    if employees < 1000:
        return "201-1000"
    return "1000+"


class DomainAdapter(SourceAdapter):
    """Looks the visited domain up in a company database"""

    name = "domain"

    def __init__(self, api_key: Optional[str] = None, base_url: str = "https://company.clearbit.com/v2", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        if not self.api_key:
            self.logger.warning("Clearbit API key not found. Set CLEARBIT_API_KEY to enable domain lookups.")

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def _lookup(self, context: LookupContext) -> Optional[EnrichmentResult]:
        if not context.domain:
            return None

        data = await self._get_json(
            f"{self.base_url}/companies/find",
            params={"domain": context.domain},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        if not data:
            # 202: lookup queued on the provider side
            return None
        return self._format_result(data)

    def _format_result(self, data: Dict[str, Any]) -> EnrichmentResult:
        category = data.get("category") or {}
        metrics = data.get("metrics") or {}
        geo = data.get("geo") or {}
        domain = data.get("domain")

        return EnrichmentResult(
            name=data.get("name"),
            industry=category.get("industry"),
            size=map_employee_count(metrics.get("employees")),
            location=Location(
                city=geo.get("city"),
                country=geo.get("country"),
                region=geo.get("state"),
            ),
            phone=data.get("phone"),
            website=f"https://{domain}" if domain else None,
            confidence=DOMAIN_CONFIDENCE,
        )
