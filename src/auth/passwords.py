"""
Password hashing and one-time token helpers.

Passwords are hashed with bcrypt; the cost factor comes from
BCRYPT_ROUNDS. One-time email tokens are stored as SHA-256 digests.
"""

import hashlib
import re
import secrets
from typing import Optional

import bcrypt

from src.auth.config import get_auth_config
from src.utils.errors import ValidationFailed

MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or get_auth_config().bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except (AttributeError, ValueError):
        return False


def validate_password_strength(password: str) -> None:
    """At least 8 characters with a letter and a digit."""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailed(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    if not re.search(r"[A-Za-z]", password) or not re.search(r"\d", password):
        raise ValidationFailed("Password must contain at least one letter and one number")


def generate_token() -> str:
    """URL-safe raw token for email links."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
