"""
Authentication and Authorization Module

Email + password accounts with HS256 access tokens:
- Users register and log in via /api/auth
- Access tokens are signed with JWT_SECRET
- Role-based access control (user, admin)
- Project ownership enforcement

Usage:
    @router.get("/projects")
    def list_projects(current_user: User = Depends(get_current_user)):
        ...

    # Admin-only endpoints
    @router.get("/admin/stats")
    def stats(admin: User = Depends(require_admin)):
        ...

    # Project ownership check
    @router.get("/projects/{project_id}")
    def get_project(project: Project = Depends(get_owned_project)):
        ...
"""

from .config import AuthConfig, get_auth_config
from .jwt import create_access_token, verify_access_token, JWTError
from .models import User, UserRole, AuthToken, TokenPurpose
from .passwords import hash_password, verify_password, validate_password_strength
from .service import AuthService, user_to_dict
from .dependencies import (
    get_current_user,
    require_admin,
    check_project_access,
    ProjectAccessChecker,
    get_owned_project,
)

__all__ = [
    "AuthConfig",
    "get_auth_config",
    "create_access_token",
    "verify_access_token",
    "JWTError",
    "User",
    "UserRole",
    "AuthToken",
    "TokenPurpose",
    "hash_password",
    "verify_password",
    "validate_password_strength",
    "AuthService",
    "user_to_dict",
    "get_current_user",
    "require_admin",
    "check_project_access",
    "ProjectAccessChecker",
    "get_owned_project",
]
