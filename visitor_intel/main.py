"""
Visitor Intelligence Platform - FastAPI Application
"""

from contextlib import asynccontextmanager

import aiohttp
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from visitor_intel.api.v1.api import api_router
from visitor_intel.core.config import settings
from visitor_intel.core.database import close_client
from visitor_intel.core.logging import configure_logging
from visitor_intel.services.container import create_services

configure_logging(settings.DEBUG)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Visitor Intelligence Platform", storage=settings.STORAGE_BACKEND)
    http_session = aiohttp.ClientSession()
    app.state.services = await create_services(settings, http_session)
    
    yield
    
    # Shutdown
    logger.info("Shutting down Visitor Intelligence Platform")
    await http_session.close()
    close_client()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Visitor identification, company enrichment and lead scoring",
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Visitor Intelligence Platform API",
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "storage": settings.STORAGE_BACKEND,
    }
