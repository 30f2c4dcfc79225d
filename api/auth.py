"""
Authentication API

Endpoints:
- POST /api/auth/register - Create account, returns access token
- POST /api/auth/login - Exchange credentials for an access token
- POST /api/auth/verify-email - Confirm email with the emailed token
- POST /api/auth/forgot-password - Email a password reset link
- POST /api/auth/reset-password - Set a new password with a reset token
- POST /api/auth/change-password - Change password (authenticated)
- POST /api/auth/change-email - Request an email change (authenticated)
- POST /api/auth/confirm-email-change - Confirm the new email address
- GET /api/auth/me - Current user profile
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user
from src.auth.models import User
from src.auth.service import AuthService
from src.database.models import Project
from src.database.session import get_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    full_name: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=1, max_length=128)


class ChangeEmailRequest(BaseModel):
    new_email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User profile response."""
    id: str
    email: str
    full_name: Optional[str]
    role: str
    is_active: bool
    email_verified: bool
    project_count: int = 0
    created_at: Optional[datetime]


class AuthResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def _user_response(user: User, db: Session) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role.value,
        is_active=user.is_active,
        email_verified=user.email_verified,
        project_count=db.query(Project).filter(Project.user_id == user.id).count(),
        created_at=user.created_at,
    )


# =============================================================================
# REGISTRATION & LOGIN
# =============================================================================

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Create an account.

    A verification link is emailed; the returned token works immediately.
    """
    user, token = await AuthService(db).register(request.email, request.password, request.full_name)
    return AuthResponse(access_token=token, user=_user_response(user, db))


@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user, token = AuthService(db).login(request.email, request.password)
    logger.info(f"User {user.email} logged in")
    return AuthResponse(access_token=token, user=_user_response(user, db))


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(request: TokenRequest, db: Session = Depends(get_db)):
    AuthService(db).verify_email(request.token)
    return MessageResponse(message="Email verified")


# =============================================================================
# PASSWORD
# =============================================================================

@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(request: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Always succeeds so callers cannot learn which emails have accounts."""
    await AuthService(db).request_password_reset(request.email)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    await AuthService(db).reset_password(request.token, request.new_password)
    return MessageResponse(message="Password has been reset")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    await AuthService(db).change_password(current_user, request.current_password, request.new_password)
    return MessageResponse(message="Password changed")


# =============================================================================
# EMAIL CHANGE
# =============================================================================

@router.post("/change-email", response_model=MessageResponse)
async def change_email(
    request: ChangeEmailRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    await AuthService(db).request_email_change(current_user, request.new_email, request.password)
    return MessageResponse(message="Check your new inbox to confirm the change")


@router.post("/confirm-email-change", response_model=UserResponse)
def confirm_email_change(request: TokenRequest, db: Session = Depends(get_db)):
    user = AuthService(db).confirm_email_change(request.token)
    return _user_response(user, db)


# =============================================================================
# PROFILE
# =============================================================================

@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get the current authenticated user's profile."""
    return _user_response(current_user, db)
