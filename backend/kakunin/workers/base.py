"""Shared helpers for Celery tasks.

Task arguments are JSON strings; ids are parsed and the acting user is
re-loaded from the database inside the task, never trusted from the caller.

Tasks in this package never call self.retry(): a failed OCR or export is
recorded in the database and retried only by a new request or the next run.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from ..models.user import User


def parse_uuid(value: str, field: str) -> UUID:
    """Parse a task argument as UUID.

    Raises:
        ValueError: If value is not a UUID string
    """
    try:
        return UUID(value)
    except (ValueError, AttributeError, TypeError) as e:
        raise ValueError(f"Invalid {field} format '{value}': {str(e)}")


def load_active_user(session: Session, user_id: UUID) -> User:
    """Load an ACTIVE user.

    Raises:
        ValueError: If the user does not exist or is disabled
    """
    user = session.query(User).filter(User.id == user_id).first()
    if not user or user.status != "ACTIVE":
        raise ValueError(f"User {user_id} does not exist or is disabled")
    return user
