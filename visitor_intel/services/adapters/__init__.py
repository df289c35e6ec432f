"""
Company enrichment sources, in merge priority order
"""

from typing import List, Optional

import aiohttp

from visitor_intel.core.config import Settings, settings as default_settings
from visitor_intel.services.adapters.base import LookupContext, SourceAdapter
from visitor_intel.services.adapters.directory_adapter import DirectoryAdapter
from visitor_intel.services.adapters.domain_adapter import DomainAdapter
from visitor_intel.services.adapters.email_adapter import EmailAdapter
from visitor_intel.services.adapters.ip_adapter import IPAdapter


def build_default_adapters(
    config: Optional[Settings] = None,
    http_session: Optional[aiohttp.ClientSession] = None,
) -> List[SourceAdapter]:
    """IP, domain, email, directory: the order fields are merged in"""
    config = config or default_settings
    common = {"timeout": config.ADAPTER_TIMEOUT_SECONDS, "http_session": http_session}
    return [
        IPAdapter(token=config.IPINFO_TOKEN, base_url=config.IPINFO_BASE_URL, **common),
        DomainAdapter(api_key=config.CLEARBIT_API_KEY, base_url=config.CLEARBIT_BASE_URL, **common),
        EmailAdapter(api_key=config.HUNTER_API_KEY, base_url=config.HUNTER_BASE_URL, **common),
        DirectoryAdapter(**common),
    ]


__all__ = [
    "LookupContext",
    "SourceAdapter",
    "IPAdapter",
    "DomainAdapter",
    "EmailAdapter",
    "DirectoryAdapter",
    "build_default_adapters",
]
