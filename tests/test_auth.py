"""
Authentication Tests

Tests for password hashing, access tokens, the account flows and the
FastAPI auth dependencies.
"""

from datetime import datetime, timedelta

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from src.auth.config import DEV_JWT_SECRET, get_auth_config
from src.auth.dependencies import DEV_USER_EMAIL, check_project_access, get_current_user, require_admin
from src.auth.jwt import JWTError, create_access_token, verify_access_token
from src.auth.models import AuthToken, UserRole
from src.auth.passwords import (
    hash_password,
    hash_token,
    validate_password_strength,
    verify_password,
)
from src.auth.service import AuthService, user_to_dict
from src.utils.errors import AuthError, ConfigurationError, ValidationFailed


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


# =============================================================================
# PASSWORDS
# =============================================================================

class TestPasswords:

    def test_hash_and_verify(self):
        stored = hash_password("garden123")

        assert stored.startswith("$2b$04$")
        assert verify_password("garden123", stored)
        assert not verify_password("garden124", stored)

    def test_salted(self):
        assert hash_password("garden123") != hash_password("garden123")

    def test_malformed_hash(self):
        assert not verify_password("garden123", "plain-text")
        assert not verify_password("garden123", "md5$1$aa$bb")

    def test_explicit_rounds(self):
        stored = hash_password("garden123", rounds=5)

        assert stored.startswith("$2b$05$")
        assert verify_password("garden123", stored)

    def test_overlong_password_rejected(self):
        with pytest.raises(ValidationFailed, match="72 bytes"):
            validate_password_strength("garden1" * 11)

    @pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678", ""])
    def test_weak_passwords(self, password):
        with pytest.raises(ValidationFailed):
            validate_password_strength(password)

    def test_strong_password(self):
        validate_password_strength("garden123")


# =============================================================================
# JWT
# =============================================================================

class TestAccessTokens:

    def test_round_trip(self):
        token = create_access_token("user-1", "ann@example.com", "user")
        payload = verify_access_token(token)

        assert payload["sub"] == "user-1"
        assert payload["email"] == "ann@example.com"
        assert payload["role"] == "user"
        assert payload["type"] == "access"

    def test_expired(self):
        token = create_access_token("user-1", "ann@example.com", "user", expires_minutes=-1)
        with pytest.raises(JWTError, match="expired"):
            verify_access_token(token)

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "user-1", "type": "access"}, "another-secret", algorithm="HS256")
        with pytest.raises(JWTError, match="signature"):
            verify_access_token(token)

    def test_not_an_access_token(self):
        token = jwt.encode({"sub": "user-1", "type": "refresh"}, "test-secret", algorithm="HS256")
        with pytest.raises(JWTError, match="Not an access token"):
            verify_access_token(token)

    def test_missing_subject(self):
        token = jwt.encode({"type": "access"}, "test-secret", algorithm="HS256")
        with pytest.raises(JWTError, match="sub"):
            verify_access_token(token)

    def test_garbage(self):
        with pytest.raises(JWTError):
            verify_access_token("not-a-token")

    def test_refuses_default_secret_when_auth_enabled(self, monkeypatch):
        forged = jwt.encode({"sub": "user-1", "type": "access"}, DEV_JWT_SECRET, algorithm="HS256")
        monkeypatch.delenv("JWT_SECRET")
        get_auth_config.cache_clear()

        with pytest.raises(ConfigurationError):
            create_access_token("user-1", "ann@example.com", "user")
        with pytest.raises(ConfigurationError):
            verify_access_token(forged)

    def test_default_secret_allowed_without_auth(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET")
        monkeypatch.setenv("AUTH_ENABLED", "false")
        get_auth_config.cache_clear()

        token = create_access_token("user-1", "ann@example.com", "user")
        assert verify_access_token(token)["sub"] == "user-1"


class TestAuthConfig:

    def test_admin_emails_from_env(self, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "Boss@Example.com, ops@example.com")
        get_auth_config.cache_clear()

        assert get_auth_config().admin_emails == ["boss@example.com", "ops@example.com"]

    def test_is_configured(self):
        assert get_auth_config().is_configured


# =============================================================================
# ACCOUNT FLOWS
# =============================================================================

class TestRegistration:

    async def test_register_sends_verification(self, db, sent_emails):
        user, token = await AuthService(db).register(" Ann@Example.com ", "garden123", "Ann")

        assert user.email == "ann@example.com"
        assert user.role == UserRole.USER
        assert not user.email_verified
        assert verify_access_token(token)["sub"] == user.id

        [email] = sent_emails
        assert email["to"] == ["ann@example.com"]
        assert "verify" in email["subject"].lower()
        assert "/verify-email?token=" in email["text"]

    async def test_register_without_email_delivery(self, db):
        user, _ = await AuthService(db).register("ann@example.com", "garden123")
        assert db.query(AuthToken).filter(AuthToken.user_id == user.id).count() == 1

    async def test_duplicate_email(self, db, user):
        with pytest.raises(ValidationFailed):
            await AuthService(db).register("OWNER@example.com", "garden123")

    async def test_invalid_email(self, db):
        with pytest.raises(ValidationFailed):
            await AuthService(db).register("not-an-email", "garden123")

    async def test_admin_email_gets_admin_role(self, db, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "boss@example.com")
        get_auth_config.cache_clear()

        user, _ = await AuthService(db).register("boss@example.com", "garden123")
        assert user.role == UserRole.ADMIN

    async def test_verify_email(self, db, sent_emails):
        service = AuthService(db)
        user, _ = await service.register("ann@example.com", "garden123")

        service.verify_email(sent_emails.last_token())
        assert user.email_verified

        # One-time
        with pytest.raises(AuthError):
            service.verify_email(sent_emails.last_token())


class TestLogin:

    def test_login(self, db, user):
        logged_in, token = AuthService(db).login("Owner@Example.com", "password123")

        assert logged_in.id == user.id
        assert logged_in.last_login_at is not None
        assert verify_access_token(token)["email"] == user.email

    def test_wrong_password(self, db, user):
        with pytest.raises(AuthError, match="Invalid email or password"):
            AuthService(db).login(user.email, "wrong-password1")

    def test_unknown_user(self, db):
        with pytest.raises(AuthError):
            AuthService(db).login("nobody@example.com", "password123")

    def test_disabled_account(self, db, make_user):
        make_user(email="gone@example.com", is_active=False)
        with pytest.raises(AuthError, match="disabled"):
            AuthService(db).login("gone@example.com", "password123")


class TestPasswordFlows:

    async def test_reset(self, db, user, sent_emails):
        service = AuthService(db)
        await service.request_password_reset(user.email)
        token = sent_emails.last_token()

        await service.reset_password(token, "newpass456")

        assert verify_password("newpass456", user.password_hash)
        assert user.password_changed_at is not None
        assert "changed" in sent_emails[-1]["subject"]
        with pytest.raises(AuthError):
            await service.reset_password(token, "another789")

    async def test_reset_unknown_email_is_silent(self, db, sent_emails):
        await AuthService(db).request_password_reset("nobody@example.com")
        assert sent_emails == []

    async def test_new_request_invalidates_old_token(self, db, user, sent_emails):
        service = AuthService(db)
        await service.request_password_reset(user.email)
        await service.request_password_reset(user.email)
        first, second = sent_emails.tokens()

        with pytest.raises(AuthError):
            await service.reset_password(first, "newpass456")
        await service.reset_password(second, "newpass456")

    async def test_expired_token(self, db, user, sent_emails):
        service = AuthService(db)
        await service.request_password_reset(user.email)
        token = sent_emails.last_token()

        record = db.query(AuthToken).filter(AuthToken.token_hash == hash_token(token)).one()
        record.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()

        with pytest.raises(AuthError, match="expired"):
            await service.reset_password(token, "newpass456")

    async def test_change_password(self, db, user):
        service = AuthService(db)
        await service.change_password(user, "password123", "newpass456")

        assert verify_password("newpass456", user.password_hash)
        with pytest.raises(AuthError):
            await service.change_password(user, "password123", "other789x")


class TestEmailChange:

    async def test_change_flow(self, db, user, sent_emails):
        service = AuthService(db)
        await service.request_email_change(user, "New@Example.com", "password123")

        [email] = sent_emails
        assert email["to"] == ["new@example.com"]

        service.confirm_email_change(sent_emails.last_token())
        assert user.email == "new@example.com"
        assert user.email_verified

    async def test_wrong_password(self, db, user):
        with pytest.raises(AuthError):
            await AuthService(db).request_email_change(user, "new@example.com", "nope12345")

    async def test_same_or_taken_email(self, db, user, make_user):
        make_user(email="taken@example.com")
        service = AuthService(db)

        with pytest.raises(ValidationFailed):
            await service.request_email_change(user, user.email, "password123")
        with pytest.raises(ValidationFailed):
            await service.request_email_change(user, "taken@example.com", "password123")

    async def test_address_taken_before_confirmation(self, db, user, make_user, sent_emails):
        service = AuthService(db)
        await service.request_email_change(user, "new@example.com", "password123")
        make_user(email="new@example.com")

        with pytest.raises(ValidationFailed):
            service.confirm_email_change(sent_emails.last_token())
        assert user.email == "owner@example.com"

    def test_user_to_dict(self, user):
        data = user_to_dict(user)

        assert data["email"] == "owner@example.com"
        assert data["role"] == "user"
        assert "password_hash" not in data


# =============================================================================
# DEPENDENCIES
# =============================================================================

class TestDependencies:

    async def test_current_user(self, db, user):
        token = create_access_token(user.id, user.email, user.role.value)
        assert (await get_current_user(bearer(token), db)).id == user.id

    async def test_missing_credentials(self, db):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(None, db)
        assert exc.value.status_code == 401

    async def test_deleted_user(self, db):
        token = create_access_token("missing-user", "x@example.com", "user")
        with pytest.raises(HTTPException) as exc:
            await get_current_user(bearer(token), db)
        assert exc.value.detail == "User not found"

    async def test_disabled_user(self, db, make_user):
        disabled = make_user(is_active=False)
        token = create_access_token(disabled.id, disabled.email, "user")
        with pytest.raises(HTTPException) as exc:
            await get_current_user(bearer(token), db)
        assert exc.value.status_code == 403

    async def test_dev_user_when_auth_disabled(self, db, monkeypatch):
        monkeypatch.setenv("AUTH_ENABLED", "false")
        get_auth_config.cache_clear()

        dev = await get_current_user(None, db)

        assert dev.email == DEV_USER_EMAIL
        assert dev.is_admin
        assert (await get_current_user(None, db)).id == dev.id

    async def test_require_admin(self, user, make_user):
        admin = make_user(role=UserRole.ADMIN)

        assert await require_admin(admin) is admin
        with pytest.raises(HTTPException) as exc:
            await require_admin(user)
        assert exc.value.status_code == 403

    def test_project_access(self, project, user, make_user):
        stranger = make_user()
        admin = make_user(role=UserRole.ADMIN)

        assert check_project_access(project, user) is project
        assert check_project_access(project, admin) is project

        with pytest.raises(HTTPException) as exc:
            check_project_access(project, stranger)
        assert exc.value.status_code == 403

        with pytest.raises(HTTPException) as exc:
            check_project_access(project, admin, allow_admin_access=False)
        assert exc.value.status_code == 403

        with pytest.raises(HTTPException) as exc:
            check_project_access(None, user)
        assert exc.value.status_code == 404
