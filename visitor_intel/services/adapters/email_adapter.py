"""
Domain to contact email discovery (Hunter domain search)
"""

from typing import Any, Dict, List, Optional

from visitor_intel.schemas.company import EnrichmentResult
from visitor_intel.services.adapters.base import LookupContext, SourceAdapter

ROLE_KEYWORDS = ("contact", "info", "sales")


def is_role_address(candidate: Dict[str, Any]) -> bool:
    if candidate.get("type") == "generic":
        return True
    local_part = (candidate.get("value") or "").split("@", 1)[0].lower()
    return any(keyword in local_part for keyword in ROLE_KEYWORDS)


def pick_contact_email(emails: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Prefer a generic role address, else the first candidate"""
    if not emails:
        return None
    for candidate in emails:
        if is_role_address(candidate):
            return candidate
    return emails[0]


class EmailAdapter(SourceAdapter):
    """Finds a company contact address for the visited domain"""

    name = "email"

    def __init__(self, api_key: Optional[str] = None, base_url: str = "https://api.hunter.io/v2", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        if not self.api_key:
            self.logger.warning("Hunter API key not found. Set HUNTER_API_KEY to enable email lookups.")

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def _lookup(self, context: LookupContext) -> Optional[EnrichmentResult]:
        if not context.domain:
            return None

        data = await self._get_json(
            f"{self.base_url}/domain-search",
            params={"domain": context.domain, "api_key": self.api_key},
        )
        emails = (data.get("data") or {}).get("emails") or []
        contact = pick_contact_email(emails)
        if contact is None or not contact.get("value"):
            return None

        confidence = (contact.get("confidence") or 0) / 100
        return EnrichmentResult(
            email=contact["value"],
            confidence=min(max(confidence, 0.0), 1.0),
        )
