"""
Authentication Configuration

Settings for JWT issuing/validation and auth behavior.
"""

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

DEV_JWT_SECRET = "dev-secret-change-me"


def parse_admin_emails_from_env() -> list[str]:
    """Parse ADMIN_EMAILS env var as comma-separated string."""
    raw = os.getenv("ADMIN_EMAILS", "")
    if not raw:
        return []
    return [email.strip().lower() for email in raw.split(",") if email.strip()]


class AuthConfig(BaseSettings):
    """Authentication configuration loaded from environment."""

    # JWT Settings
    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 60 * 24

    # Password hashing cost
    bcrypt_rounds: int = 12

    # One-time token lifetimes
    verification_token_hours: int = 24
    reset_token_hours: int = 1
    email_change_token_hours: int = 24

    # Auth behavior
    auth_enabled: bool = True  # Set to False for local dev without auth

    # NOTE: validation_alias keeps BaseSettings from JSON-parsing the
    # comma-separated ADMIN_EMAILS value; get_auth_config() parses it.
    admin_emails: list[str] = Field(
        default_factory=list,
        validation_alias="__ADMIN_EMAILS_DO_NOT_AUTO_LOAD__"
    )

    class Config:
        env_prefix = ""
        extra = "ignore"

    @property
    def is_configured(self) -> bool:
        """True once a real signing secret is set."""
        return bool(self.jwt_secret) and self.jwt_secret != DEV_JWT_SECRET


@lru_cache()
def get_auth_config() -> AuthConfig:
    """Get cached auth configuration."""
    config = AuthConfig(
        jwt_secret=os.getenv("JWT_SECRET", DEV_JWT_SECRET),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", str(60 * 24))),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        auth_enabled=os.getenv("AUTH_ENABLED", "true").lower() == "true",
    )
    # Assigned after init: the alias blocks the field name as a constructor kwarg
    config.admin_emails = parse_admin_emails_from_env()
    return config
