"""User roles and permission hierarchy.

Role Hierarchy (descending permissions):
- ADMIN: Batch export trigger and ledger, everything below
- REVIEWER: Second-pass review of any owner's confirmed documents
- OPERATOR: Upload, OCR and first-pass confirm/reject of own documents

Permission Matrix:
┌──────────────────────────┬───────┬──────────┬──────────┐
│ Action                   │ ADMIN │ REVIEWER │ OPERATOR │
├──────────────────────────┼───────┼──────────┼──────────┤
│ Run / list batch exports │   ✓   │          │          │
│ Review / review-reject   │   ✓   │    ✓     │          │
│ Upload, OCR, edit own    │   ✓   │    ✓     │    ✓     │
│ Confirm / reject own     │   ✓   │    ✓     │    ✓     │
└──────────────────────────┴───────┴──────────┴──────────┘
"""

from enum import Enum
from typing import Set


class UserRole(str, Enum):
    """User roles. Values are stored as TEXT in the database."""
    ADMIN = "ADMIN"
    REVIEWER = "REVIEWER"
    OPERATOR = "OPERATOR"


# Each role includes permissions of all roles below it
ROLE_HIERARCHY = {
    UserRole.ADMIN: {UserRole.ADMIN, UserRole.REVIEWER, UserRole.OPERATOR},
    UserRole.REVIEWER: {UserRole.REVIEWER, UserRole.OPERATOR},
    UserRole.OPERATOR: {UserRole.OPERATOR},
}


def has_permission(user_role: UserRole, required_role: UserRole) -> bool:
    """Check if user_role satisfies required_role under the hierarchy.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.REVIEWER)
        True
        >>> has_permission(UserRole.OPERATOR, UserRole.REVIEWER)
        False
    """
    return required_role in ROLE_HIERARCHY.get(user_role, set())


def get_allowed_roles(required_role: UserRole) -> Set[UserRole]:
    """Get all roles that have permission to perform an action."""
    return {role for role, permissions in ROLE_HIERARCHY.items() if required_role in permissions}
