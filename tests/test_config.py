"""
Tests for application settings.
"""

import pytest
from pydantic import ValidationError

from visitor_intel.core.config import Settings


def test_deadline_may_equal_adapter_timeout():
    config = Settings(ADAPTER_TIMEOUT_SECONDS=2.0, ENRICHMENT_DEADLINE_SECONDS=2.0)

    assert config.ENRICHMENT_DEADLINE_SECONDS == 2.0


def test_deadline_shorter_than_adapter_timeout_is_rejected():
    with pytest.raises(ValidationError, match="ENRICHMENT_DEADLINE_SECONDS"):
        Settings(ADAPTER_TIMEOUT_SECONDS=5.0, ENRICHMENT_DEADLINE_SECONDS=3.0)
