"""DocumentStatus state machine for the identity document review lifecycle

State flow:
    uploaded → ocr_processing → ocr_completed → confirmed | rejected
    ocr_processing → uploaded (OCR fallback, manual entry)
    confirmed → reviewed | review_rejected (second-pass review)
    rejected / review_rejected → confirmed (re-confirmation)
"""

from enum import Enum
from typing import Optional, Dict, List


class DocumentStatus(str, Enum):
    """Document review status enum"""
    UPLOADED = "uploaded"                # Created; also the manual-entry fallback
    OCR_PROCESSING = "ocr_processing"    # OCR in flight, clients poll
    OCR_COMPLETED = "ocr_completed"      # Fields extracted, awaiting confirm/reject
    CONFIRMED = "confirmed"              # Eligible for batch export
    REJECTED = "rejected"
    REVIEWED = "reviewed"                # Second-pass approval (terminal)
    REVIEW_REJECTED = "review_rejected"  # Second-pass rejection, reopens first pass


class StateTransitionError(Exception):
    """Raised when a status change is not allowed by ALLOWED_TRANSITIONS."""

    def __init__(self, from_status: Optional[DocumentStatus], to_status: DocumentStatus):
        self.from_status = from_status
        self.to_status = to_status
        source = from_status.value if from_status else "(new)"
        super().__init__(f"Cannot transition document from {source} to {to_status.value}")


# State transition rules
ALLOWED_TRANSITIONS: Dict[Optional[DocumentStatus], List[DocumentStatus]] = {
    None: [DocumentStatus.UPLOADED],
    DocumentStatus.UPLOADED: [
        DocumentStatus.OCR_PROCESSING,
        DocumentStatus.CONFIRMED,
        DocumentStatus.REJECTED,
    ],
    DocumentStatus.OCR_PROCESSING: [
        DocumentStatus.OCR_COMPLETED,
        DocumentStatus.UPLOADED,
    ],
    DocumentStatus.OCR_COMPLETED: [
        DocumentStatus.CONFIRMED,
        DocumentStatus.REJECTED,
    ],
    DocumentStatus.CONFIRMED: [
        DocumentStatus.REVIEWED,
        DocumentStatus.REVIEW_REJECTED,
    ],
    DocumentStatus.REJECTED: [DocumentStatus.CONFIRMED],
    DocumentStatus.REVIEW_REJECTED: [DocumentStatus.CONFIRMED],
    DocumentStatus.REVIEWED: [],  # Terminal
}

# Form editing is only possible in these states
EDITABLE_STATUSES = frozenset({DocumentStatus.UPLOADED, DocumentStatus.OCR_COMPLETED})

# Dashboard "uploaded" bucket and the "pending" list filter
PENDING_STATUSES = frozenset({
    DocumentStatus.UPLOADED,
    DocumentStatus.OCR_PROCESSING,
    DocumentStatus.OCR_COMPLETED,
})


def can_transition(from_status: Optional[DocumentStatus], to_status: DocumentStatus) -> bool:
    """Validate if status transition is allowed

    Args:
        from_status: Current status (None for new documents)
        to_status: Target status

    Returns:
        True if transition is allowed, False otherwise

    Example:
        >>> can_transition(DocumentStatus.UPLOADED, DocumentStatus.OCR_PROCESSING)
        True
        >>> can_transition(DocumentStatus.REVIEWED, DocumentStatus.CONFIRMED)
        False
    """
    allowed = ALLOWED_TRANSITIONS.get(from_status, [])
    return to_status in allowed


def validate_transition(from_status: Optional[DocumentStatus], to_status: DocumentStatus) -> None:
    """Raise StateTransitionError unless from_status → to_status is allowed."""
    if not can_transition(from_status, to_status):
        raise StateTransitionError(from_status, to_status)


def get_allowed_transitions(from_status: Optional[DocumentStatus]) -> List[DocumentStatus]:
    """Get list of allowed transitions from current status

    Example:
        >>> get_allowed_transitions(DocumentStatus.OCR_COMPLETED)
        [DocumentStatus.CONFIRMED, DocumentStatus.REJECTED]
    """
    return ALLOWED_TRANSITIONS.get(from_status, [])


def is_editable(status: DocumentStatus) -> bool:
    return status in EDITABLE_STATUSES
