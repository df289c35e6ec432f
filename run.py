#!/usr/bin/env python3
"""
Run script for deployment
"""

import os
import uvicorn

from visitor_intel.core.config import settings
from visitor_intel.main import app

if __name__ == "__main__":
    # PORT is set by the hosting platform
    port = int(os.environ.get("PORT", 8000))

    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=port,
        log_level="debug" if settings.DEBUG else "info",
    )
