"""Document history service.

Every status change and data edit is recorded as a DocumentHistory row.
Entries are only ever inserted; nothing in this package updates or deletes them.
Changes payloads must never contain extracted personal data except for the
explicit old/new snapshot of a manual edit.
"""

import logging
from typing import Optional, Dict, Any, List
from uuid import UUID

from sqlalchemy.orm import Session

from ..models.document_history import DocumentHistory, HistoryAction

logger = logging.getLogger(__name__)


def append_history(
    db: Session,
    document_id: UUID,
    action: HistoryAction,
    operator_id: Optional[UUID] = None,
    changes: Optional[Dict[str, Any]] = None,
) -> DocumentHistory:
    """Append a history entry for a document.

    Args:
        db: Database session
        document_id: Document the action applies to
        action: What happened
        operator_id: User who triggered it (None for system actions)
        changes: Before/after snapshot; empty for status-only actions

    Returns:
        DocumentHistory: The created entry (flushed, not committed)
    """
    entry = DocumentHistory(
        document_id=document_id,
        operator_id=operator_id,
        action=HistoryAction(action).value,
        changes=changes or {},
    )
    db.add(entry)
    db.flush()

    logger.info(f"History appended: document_id={document_id}, action={entry.action}")
    return entry


def list_history(db: Session, document_id: UUID, newest_first: bool = True) -> List[DocumentHistory]:
    order = DocumentHistory.created_at.desc() if newest_first else DocumentHistory.created_at.asc()
    return (
        db.query(DocumentHistory)
        .filter(DocumentHistory.document_id == document_id)
        .order_by(order, DocumentHistory.id)
        .all()
    )
