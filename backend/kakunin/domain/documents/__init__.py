"""Documents domain module - review lifecycle and object storage port"""

from .document_status import (
    DocumentStatus,
    StateTransitionError,
    ALLOWED_TRANSITIONS,
    EDITABLE_STATUSES,
    PENDING_STATUSES,
    can_transition,
    validate_transition,
    get_allowed_transitions,
    is_editable,
)

__all__ = [
    "DocumentStatus",
    "StateTransitionError",
    "ALLOWED_TRANSITIONS",
    "EDITABLE_STATUSES",
    "PENDING_STATUSES",
    "can_transition",
    "validate_transition",
    "get_allowed_transitions",
    "is_editable",
]
