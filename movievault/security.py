# movievault/security.py
from __future__ import annotations

from fastapi import Depends

from movievault.core.errors import ForbiddenError
from movievault.models_auth import AuthUser
from movievault.routes.auth import get_current_user


def require_user(
    current: AuthUser = Depends(get_current_user),
) -> AuthUser:
    """
    Auth-only dependency.
    Any authenticated user, whatever the role.
    """
    return current


def require_admin(
    current: AuthUser = Depends(get_current_user),
) -> AuthUser:
    """
    Authenticated AND role == admin.
    """
    if not current.is_admin:
        raise ForbiddenError("Only administrators can do this")
    return current
