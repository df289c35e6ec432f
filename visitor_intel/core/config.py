"""
Application configuration settings
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""
    
    # Application
    APP_NAME: str = "Visitor Intelligence Platform"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    
    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    
    # Storage
    STORAGE_BACKEND: str = "mongodb"  # 'mongodb' or 'memory'
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "visitor_intel"
    SESSIONS_COLLECTION: str = "sessions"
    COMPANIES_COLLECTION: str = "companies"
    
    # External APIs
    IPINFO_TOKEN: Optional[str] = None
    IPINFO_BASE_URL: str = "https://ipinfo.io"
    CLEARBIT_API_KEY: Optional[str] = None
    CLEARBIT_BASE_URL: str = "https://company.clearbit.com/v2"
    HUNTER_API_KEY: Optional[str] = None
    HUNTER_BASE_URL: str = "https://api.hunter.io/v2"
    
    # Enrichment
    ADAPTER_TIMEOUT_SECONDS: float = 3.0
    ENRICHMENT_DEADLINE_SECONDS: float = 3.5
    ENRICHMENT_CONFIDENCE_THRESHOLD: float = 0.3

    @model_validator(mode="after")
    def _check_enrichment_deadline(self):
        if self.ENRICHMENT_DEADLINE_SECONDS < self.ADAPTER_TIMEOUT_SECONDS:
            raise ValueError("ENRICHMENT_DEADLINE_SECONDS must be at least ADAPTER_TIMEOUT_SECONDS")
        return self
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Create settings instance
settings = Settings()
