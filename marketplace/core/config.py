"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # App
    APP_NAME: str = "Auction Marketplace"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./marketplace.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 30
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO: bool = False

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Per-listing lock (optional, on top of the version check)
    LISTING_LOCK_ENABLED: bool = False
    LOCK_EXPIRE_MS: int = 3000  # milliseconds
    LOCK_RETRY_DELAY: float = 0.005  # seconds
    LOCK_MAX_RETRIES: int = 10

    # Optimistic writes
    MUTATION_MAX_RETRIES: int = 3
    MUTATION_BACKOFF_MS: int = 10

    # Marketplace rules
    DEFAULT_CURRENCY: str = "AED"
    DEFAULT_DURATION_HOURS: float = 24
    RELIST_DURATION_HOURS: float = 72
    BID_HISTORY_LIMIT: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # CORS
    CORS_ORIGINS: list = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
