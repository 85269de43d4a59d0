"""FastAPI dependencies for authentication and authorization.

Usage:
    @router.get("/documents")
    def list_documents(user: User = Depends(get_current_user)):
        ...

    @router.post("/batch-exports/run")
    def run_export(user: User = Depends(require_role(UserRole.ADMIN))):
        ...
"""

import logging
from typing import Callable, Optional
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from .jwt import decode_token
from .roles import UserRole, has_permission

logger = logging.getLogger(__name__)

# A missing header is answered with 401 here rather than HTTPBearer's 403
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Validate the bearer token and return the authenticated, active user.

    Raises:
        HTTPException 401: If the token is missing, invalid or expired, or the
            user is unknown or disabled
    """
    if credentials is None:
        raise _unauthorized("UNAUTHORIZED")

    try:
        payload = decode_token(credentials.credentials)
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise _unauthorized("Invalid token: missing user ID claim")
        user_id = UUID(user_id_str)

    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(f"Invalid token: {str(e)}")
    except ValueError as e:
        # Also covers an unset JWT_SECRET
        logger.warning(f"Rejected bearer token: {e}")
        raise _unauthorized("Invalid token claims")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.status != "ACTIVE":
        raise _unauthorized("User not found or disabled")

    return user


def require_role(required_role: UserRole) -> Callable:
    """Create a dependency that enforces role-based access control.

    Raises:
        HTTPException 403: If user's role is insufficient
    """

    def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        try:
            user_role = UserRole(current_user.role)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Invalid user role: {current_user.role}",
            )

        if not has_permission(user_role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {required_role.value}",
            )

        return current_user

    return role_dependency


def get_current_admin(current_user: User = Depends(require_role(UserRole.ADMIN))) -> User:
    return current_user


def get_current_reviewer(current_user: User = Depends(require_role(UserRole.REVIEWER))) -> User:
    return current_user
