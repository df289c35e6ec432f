"""
Business directory lookup
"""

from typing import Optional

from visitor_intel.schemas.company import EnrichmentResult
from visitor_intel.services.adapters.base import LookupContext, SourceAdapter


class DirectoryAdapter(SourceAdapter):
    """
    Placeholder for a business-directory provider (Places, Yelp, ...).

    No provider is wired in, so it always reports no result. It still takes
    part in the fan-out.
    """

    name = "directory"

    async def _lookup(self, context: LookupContext) -> Optional[EnrichmentResult]:
        return None
