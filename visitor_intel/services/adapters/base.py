"""
Common contract for company enrichment sources
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp
import structlog

from visitor_intel.core.exceptions import AdapterFailure
from visitor_intel.schemas.company import EnrichmentResult

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 3.0


@dataclass(frozen=True)
class LookupContext:
    """What an adapter may look up: the visitor IP and the visited domain"""
    ip: Optional[str] = None
    domain: Optional[str] = None


class SourceAdapter(ABC):
    """
    One external company lookup.

    lookup() never raises: provider errors, non-2xx answers and timeouts all
    come back as None so a failing source cannot affect its siblings.
    """

    name: str = "source"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = timeout
        self.http_session = http_session
        self.logger = logger.bind(source=self.name)

    @property
    def available(self) -> bool:
        return True

    async def lookup(self, context: LookupContext) -> Optional[EnrichmentResult]:
        if not self.available:
            return None
        try:
            return await asyncio.wait_for(self._lookup(context), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.warning("Enrichment source timed out", timeout=self.timeout)
        except AdapterFailure as e:
            self.logger.warning("Enrichment source failed", error=str(e))
        except Exception as e:
            self.logger.warning("Enrichment source error", error=str(e), error_type=type(e).__name__)
        return None

    @abstractmethod
    async def _lookup(self, context: LookupContext) -> Optional[EnrichmentResult]:
        ...

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """GET a JSON document, raising AdapterFailure on a non-2xx answer"""
        if self.http_session is not None:
            return await self._request(self.http_session, url, params, headers)

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            return await self._request(session, url, params, headers)

    async def _request(self, session, url, params, headers) -> Dict[str, Any]:
        async with session.get(url, params=params, headers=headers) as response:
            if not 200 <= response.status < 300:
                error_text = await response.text()
                raise AdapterFailure(self.name, f"HTTP {response.status} - {error_text[:200]}")
            data = await response.json(content_type=None)
            if not isinstance(data, dict):
                raise AdapterFailure(self.name, "unexpected response body")
            return data
