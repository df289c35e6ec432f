"""
API v1 router configuration
"""

from fastapi import APIRouter
from visitor_intel.api.v1.endpoints import tracking, companies, visitors

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(tracking.router, prefix="/track", tags=["tracking"])
api_router.include_router(companies.router, prefix="/companies", tags=["companies"])
api_router.include_router(visitors.router, prefix="/visitors", tags=["visitors"])
