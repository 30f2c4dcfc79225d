"""
Authentication Models

User accounts and one-time tokens for email verification,
password reset and email change flows.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from src.database.models import Base, generate_uuid


class UserRole(enum.Enum):
    """User role for access control."""
    USER = "user"      # Regular user - sees only their own projects
    ADMIN = "admin"    # Admin - sees all projects


class TokenPurpose(enum.Enum):
    """What a one-time token authorizes."""
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
    EMAIL_CHANGE = "email_change"


class User(Base):
    """Account that owns projects."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255))

    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)

    last_login_at = Column(DateTime)
    password_changed_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    projects = relationship("Project", cascade="all, delete-orphan")
    tokens = relationship("AuthToken", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_user_email", "email"),
    )

    @property
    def is_admin(self) -> bool:
        """Check if user has admin role."""
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"


class AuthToken(Base):
    """
    One-time token for an account flow.

    Only the SHA-256 hash of the token is stored; the raw value
    travels in the email link.
    """
    __tablename__ = "auth_tokens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    token_hash = Column(String(64), unique=True, nullable=False)
    purpose = Column(Enum(TokenPurpose), nullable=False)
    new_email = Column(String(255))  # Pending address for email change

    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="tokens")

    __table_args__ = (
        Index("idx_auth_token_user_purpose", "user_id", "purpose"),
    )

    @property
    def is_usable(self) -> bool:
        return self.used_at is None and self.expires_at > datetime.utcnow()
