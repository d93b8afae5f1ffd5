"""Application configuration settings."""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "CMS Bridge"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database - sync records and delivery log only, the delivery queue is in memory
    # For local: postgresql+asyncpg://postgres:postgres@db:5432/cms_bridge
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/cms_bridge"

    # Outbound webhook delivery
    WEBHOOK_RETRY_ATTEMPTS: int = 3
    WEBHOOK_RETRY_DELAY_MS: int = 1000  # Base delay, doubled on each attempt
    WEBHOOK_TIMEOUT: int = 10
    WEBHOOK_RATE_LIMIT: int = 10  # Requests per window
    WEBHOOK_RATE_WINDOW_SECONDS: int = 60
    WEBHOOK_MAX_CONCURRENT: int = 5
    WEBHOOK_QUEUE_MAX_SIZE: int = 100
    WEBHOOK_POLL_INTERVAL_MS: int = 100
    WEBHOOK_USER_AGENT: str = "HeadlessCMS-Webhook/1.0.0"

    # Inbound webhook verification
    INBOUND_WEBHOOK_SECRET: str = ""

    # Platform sync
    SYNC_DIRECTION: str = "cms_to_platform"  # cms_to_platform, platform_to_cms, bidirectional
    SYNC_TIMEOUT: int = 30
    WORDPRESS_URL: Optional[str] = None
    WORDPRESS_API_KEY: Optional[str] = None
    DRUPAL_URL: Optional[str] = None
    DRUPAL_API_KEY: Optional[str] = None
    SHOPIFY_URL: Optional[str] = None
    SHOPIFY_API_KEY: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
