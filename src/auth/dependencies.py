"""
FastAPI Authentication Dependencies

Provides dependency injection for authentication and authorization.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from src.database.session import get_db
from src.database.models import Project
from src.auth.models import User, UserRole
from src.auth.jwt import verify_access_token, JWTError
from src.auth.passwords import generate_token, hash_password
from src.auth.config import get_auth_config

logger = logging.getLogger(__name__)

# HTTP Bearer token extraction
security = HTTPBearer(auto_error=False)

DEV_USER_EMAIL = "dev@seo-audit.local"


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user.

    Raises:
        HTTPException 401: If not authenticated or the user no longer exists
        HTTPException 403: If user is disabled
    """
    config = get_auth_config()

    # If auth is disabled (local dev), return a mock user
    if not config.auth_enabled:
        return _get_dev_user(db)

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require the current user to be an admin.

    Raises:
        HTTPException 403: If user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def check_project_access(project: Optional[Project], user: User, allow_admin_access: bool = True) -> Project:
    """404 for unknown projects, 403 when the user neither owns it nor is an admin."""
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )

    if allow_admin_access and user.is_admin:
        return project

    if project.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this project",
        )

    return project


class ProjectAccessChecker:
    """
    Dependency class for checking project ownership.

    Usage:
        @router.get("/projects/{project_id}")
        def get_project(project: Project = Depends(get_owned_project)):
            # project is owned by the current user or the user is admin
            ...
    """

    def __init__(self, allow_admin_access: bool = True):
        self.allow_admin_access = allow_admin_access

    async def __call__(
        self,
        project_id: str,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> Project:
        project = db.query(Project).filter(Project.id == project_id).first()
        return check_project_access(project, current_user, self.allow_admin_access)


# Pre-configured instance
get_owned_project = ProjectAccessChecker(allow_admin_access=True)


def _get_dev_user(db: Session) -> User:
    """
    Get or create a development user when auth is disabled.

    This allows local development without issuing tokens.
    """
    user = db.query(User).filter(User.email == DEV_USER_EMAIL).first()

    if not user:
        user = User(
            email=DEV_USER_EMAIL,
            password_hash=hash_password(generate_token()),
            full_name="Development User",
            role=UserRole.ADMIN,  # Dev user gets admin for testing
            is_active=True,
            email_verified=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    return user
