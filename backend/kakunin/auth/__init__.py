"""Bearer-token authentication and role-based authorization."""

from .dependencies import get_current_user, require_role, get_current_admin, get_current_reviewer
from .jwt import create_access_token, decode_token
from .roles import UserRole, has_permission

__all__ = [
    "get_current_user",
    "require_role",
    "get_current_admin",
    "get_current_reviewer",
    "create_access_token",
    "decode_token",
    "UserRole",
    "has_permission",
]
