"""
IP to organization lookup (IPinfo)
"""

import ipaddress
import re
from typing import Any, Dict, Optional

from visitor_intel.schemas.company import EnrichmentResult, Location
from visitor_intel.services.adapters.base import LookupContext, SourceAdapter

STRUCTURED_CONFIDENCE = 0.9
ORG_ONLY_CONFIDENCE = 0.7

_ASN_PREFIX = re.compile(r"^AS\d+$", re.IGNORECASE)


def is_public_ip(ip: Optional[str]) -> bool:
    """False for empty, placeholder, malformed and non-routable addresses"""
    if not ip:
        return False
    try:
        return ipaddress.ip_address(ip.strip()).is_global
    except ValueError:
        return False


def parse_org(org: Optional[str]) -> Optional[str]:
    """'AS15169 Google LLC' -> 'Google LLC'"""
    if not org:
        return None
    parts = org.split()
    if len(parts) > 1 and _ASN_PREFIX.match(parts[0]):
        return " ".join(parts[1:])
    return org.strip() or None


class IPAdapter(SourceAdapter):
    """Resolves the visitor IP to the organization that owns it"""

    name = "ip"

    def __init__(self, token: Optional[str] = None, base_url: str = "https://ipinfo.io", **kwargs):
        super().__init__(**kwargs)
        self.token = token
        self.base_url = base_url.rstrip("/")

    async def _lookup(self, context: LookupContext) -> Optional[EnrichmentResult]:
        if not is_public_ip(context.ip):
            return None

        params = {"token": self.token} if self.token else None
        data = await self._get_json(f"{self.base_url}/{context.ip.strip()}/json", params=params)
        return self._format_result(data)

    def _format_result(self, data: Dict[str, Any]) -> Optional[EnrichmentResult]:
        if data.get("bogon"):
            return None

        company = data.get("company") or {}
        structured_name = company.get("name")
        name = structured_name or parse_org(data.get("org"))
        if not name:
            return None

        return EnrichmentResult(
            name=name,
            industry=company.get("type"),
            location=Location(
                city=data.get("city"),
                country=data.get("country"),
                region=data.get("region"),
            ),
            confidence=STRUCTURED_CONFIDENCE if structured_name else ORG_ONLY_CONFIDENCE,
        )
