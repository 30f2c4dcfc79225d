"""
JWT Access Tokens

HS256 tokens issued at login and validated on every request.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWTError

from src.auth.config import AuthConfig, get_auth_config
from src.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


class JWTError(Exception):
    """Custom JWT validation error."""
    pass


def _signing_config() -> AuthConfig:
    """Auth config, refusing the built-in development secret while auth is enabled."""
    config = get_auth_config()
    if config.auth_enabled and not config.is_configured:
        logger.error("JWT_SECRET is not set; refusing to issue or verify tokens")
        raise ConfigurationError("Authentication is not configured")
    return config


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """Sign an access token for a user."""
    config = _signing_config()
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else config.jwt_expires_minutes

    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode an access token.

    Args:
        token: The JWT token from the Authorization header

    Returns:
        Decoded token payload

    Raises:
        JWTError: If token is invalid, expired, or malformed
    """
    config = _signing_config()

    try:
        payload = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired")
    except jwt.InvalidSignatureError:
        raise JWTError("Invalid token signature")
    except jwt.DecodeError as e:
        raise JWTError(f"Token decode error: {str(e)}")
    except PyJWTError as e:
        raise JWTError(f"Token validation error: {str(e)}")

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Not an access token")
    if not payload.get("sub"):
        raise JWTError("Token missing 'sub' claim (user ID)")

    return payload
