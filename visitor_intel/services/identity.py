"""
Session identity derivation

A session is the tuple (IP, user agent, UTC calendar day). Every hit that
shares all three collapses into one session no matter how far apart the hits
are, and a new session starts only when the day rolls over or either input
changes. Visitors behind the same NAT with the same browser build are one
session for the day. Visit counting downstream relies on this.
"""

import hashlib
from datetime import datetime
from typing import Optional

from visitor_intel.schemas.common import as_utc, utcnow

SESSION_ID_LENGTH = 16
UNKNOWN_IP = "unknown"


def resolve_session_id(ip: Optional[str], user_agent: Optional[str], now: Optional[datetime] = None) -> str:
    """Derive the deterministic session id for (ip, user agent, day)"""
    day = as_utc(now or utcnow()).date().isoformat()
    raw = f"{ip or UNKNOWN_IP}_{user_agent or ''}_{day}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:SESSION_ID_LENGTH]
