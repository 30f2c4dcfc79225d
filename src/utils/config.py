"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

import logging
import sys
from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Application
    APP_NAME: str = "SEO Audit Engine"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    BASE_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:3000"

    # Resend (Optional - for email delivery)
    RESEND_API_KEY: Optional[str] = None
    FROM_EMAIL: str = "audits@seo-audit.local"
    NOTIFY_ON_COMPLETE: bool = True

    # PageSpeed Insights (Optional - real Core Web Vitals)
    PAGESPEED_API_KEY: Optional[str] = None
    PAGESPEED_ENABLED: bool = False
    PAGESPEED_STRATEGY: str = "mobile"

    # Crawler defaults
    CRAWLER_USER_AGENT: str = "SEO-Analyzer/1.0"
    CRAWLER_TIMEOUT: int = 30
    CRAWLER_MAX_REDIRECTS: int = 5
    CRAWLER_MAX_PAGES_LIMIT: int = 500

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def pagespeed_active(self) -> bool:
        return bool(self.PAGESPEED_API_KEY) or self.PAGESPEED_ENABLED


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for the service and CLI.

    Output goes to stdout so container platforms pick it up.
    """
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )

    # Quiet down chatty loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
