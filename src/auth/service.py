"""
Account Service

Registration, login and the email-driven account flows:
verification, password reset, password change and email change.

One-time tokens are stored as SHA-256 hashes; the raw token only
travels in the email link. Email failures are logged and never
fail the account operation.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from src.auth.config import get_auth_config
from src.auth.jwt import create_access_token
from src.auth.models import AuthToken, TokenPurpose, User, UserRole
from src.auth.passwords import (
    generate_token,
    hash_password,
    hash_token,
    validate_password_strength,
    verify_password,
)
from src.delivery.email import EmailDelivery
from src.utils.errors import AuthError, ValidationFailed

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationFailed("Invalid email address")
    return email


class AuthService:
    """
    Account operations for a single DB session.

    Usage:
        service = AuthService(db)
        user, token = await service.register("a@b.com", "secret123", "Ann")
        user, token = service.login("a@b.com", "secret123")
    """

    def __init__(self, db: Session, email: Optional[EmailDelivery] = None):
        self.db = db
        self.email = email or EmailDelivery()
        self.config = get_auth_config()

    # =========================================================================
    # TOKENS
    # =========================================================================

    def _token_lifetime(self, purpose: TokenPurpose) -> timedelta:
        hours = {
            TokenPurpose.EMAIL_VERIFICATION: self.config.verification_token_hours,
            TokenPurpose.PASSWORD_RESET: self.config.reset_token_hours,
            TokenPurpose.EMAIL_CHANGE: self.config.email_change_token_hours,
        }[purpose]
        return timedelta(hours=hours)

    def _issue_token(
        self,
        user: User,
        purpose: TokenPurpose,
        new_email: Optional[str] = None,
    ) -> str:
        # Older unused tokens for the same purpose stop working
        now = datetime.utcnow()
        self.db.query(AuthToken).filter(
            AuthToken.user_id == user.id,
            AuthToken.purpose == purpose,
            AuthToken.used_at.is_(None),
        ).update({AuthToken.used_at: now}, synchronize_session=False)

        raw = generate_token()
        self.db.add(AuthToken(
            user_id=user.id,
            token_hash=hash_token(raw),
            purpose=purpose,
            new_email=new_email,
            expires_at=now + self._token_lifetime(purpose),
        ))
        self.db.commit()
        return raw

    def _consume_token(self, raw: str, purpose: TokenPurpose) -> AuthToken:
        token = self.db.query(AuthToken).filter(
            AuthToken.token_hash == hash_token(raw or ""),
            AuthToken.purpose == purpose,
        ).first()
        if not token or not token.is_usable:
            raise AuthError("Invalid or expired token")
        token.used_at = datetime.utcnow()
        return token

    def issue_access_token(self, user: User) -> str:
        return create_access_token(user.id, user.email, user.role.value)

    # =========================================================================
    # REGISTRATION & LOGIN
    # =========================================================================

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    async def register(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
    ) -> Tuple[User, str]:
        """
        Create an account and send the welcome/verification email.

        Returns:
            (user, access_token)

        Raises:
            ValidationFailed: bad email, weak password or email taken
        """
        email = _normalize_email(email)
        validate_password_strength(password)

        if self.get_user_by_email(email):
            raise ValidationFailed("An account with this email already exists")

        role = UserRole.ADMIN if email in self.config.admin_emails else UserRole.USER
        user = User(
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=role,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Registered user {user.email} ({role.value})")

        token = self._issue_token(user, TokenPurpose.EMAIL_VERIFICATION)
        result = await self.email.send_welcome(user.email, user.full_name, token)
        if not result.success:
            logger.warning(f"Welcome email to {user.email} not sent: {result.error}")

        return user, self.issue_access_token(user)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        user = self.get_user_by_email(email or "")
        if not user or not verify_password(password or "", user.password_hash):
            raise AuthError("Invalid email or password")
        if not user.is_active:
            raise AuthError("Account is disabled")

        user.last_login_at = datetime.utcnow()
        self.db.commit()
        return user, self.issue_access_token(user)

    def verify_email(self, token: str) -> User:
        record = self._consume_token(token, TokenPurpose.EMAIL_VERIFICATION)
        user = record.user
        user.email_verified = True
        self.db.commit()
        logger.info(f"Email verified for {user.email}")
        return user

    # =========================================================================
    # PASSWORD FLOWS
    # =========================================================================

    async def request_password_reset(self, email: str) -> None:
        """Send a reset link. Unknown addresses are silently ignored."""
        user = self.get_user_by_email(email or "")
        if not user or not user.is_active:
            logger.info("Password reset requested for unknown or inactive account")
            return

        token = self._issue_token(user, TokenPurpose.PASSWORD_RESET)
        result = await self.email.send_password_reset(user.email, user.full_name, token)
        if not result.success:
            logger.warning(f"Password reset email to {user.email} not sent: {result.error}")

    async def reset_password(self, token: str, new_password: str) -> User:
        validate_password_strength(new_password)
        record = self._consume_token(token, TokenPurpose.PASSWORD_RESET)
        user = record.user
        self._set_password(user, new_password)

        result = await self.email.send_password_changed(user.email, user.full_name)
        if not result.success:
            logger.warning(f"Password changed email to {user.email} not sent: {result.error}")
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> User:
        if not verify_password(current_password or "", user.password_hash):
            raise AuthError("Current password is incorrect")
        validate_password_strength(new_password)
        self._set_password(user, new_password)

        result = await self.email.send_password_changed(user.email, user.full_name)
        if not result.success:
            logger.warning(f"Password changed email to {user.email} not sent: {result.error}")
        return user

    def _set_password(self, user: User, password: str) -> None:
        user.password_hash = hash_password(password)
        user.password_changed_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Password changed for {user.email}")

    # =========================================================================
    # EMAIL CHANGE
    # =========================================================================

    async def request_email_change(self, user: User, new_email: str, password: str) -> None:
        if not verify_password(password or "", user.password_hash):
            raise AuthError("Password is incorrect")

        new_email = _normalize_email(new_email)
        if new_email == user.email:
            raise ValidationFailed("New email matches the current email")
        if self.get_user_by_email(new_email):
            raise ValidationFailed("An account with this email already exists")

        token = self._issue_token(user, TokenPurpose.EMAIL_CHANGE, new_email=new_email)
        result = await self.email.send_email_change(new_email, user.full_name, token)
        if not result.success:
            logger.warning(f"Email change confirmation to {new_email} not sent: {result.error}")

    def confirm_email_change(self, token: str) -> User:
        record = self._consume_token(token, TokenPurpose.EMAIL_CHANGE)
        user = record.user

        if self.get_user_by_email(record.new_email):
            self.db.commit()
            raise ValidationFailed("An account with this email already exists")

        old_email = user.email
        user.email = record.new_email
        user.email_verified = True
        self.db.commit()
        logger.info(f"Email changed from {old_email} to {user.email}")
        return user


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role.value,
        "is_active": user.is_active,
        "email_verified": user.email_verified,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
