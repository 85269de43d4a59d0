"""Document lifecycle service.

Upload, manual edit, reviewer decisions and dashboard statistics. Every status
change goes through apply_transition, which validates it against the state
machine and appends the matching history entry.
"""

import logging
from datetime import date
from typing import BinaryIO, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..audit.service import append_history
from ..domain.documents.document_status import (
    DocumentStatus,
    PENDING_STATUSES,
    StateTransitionError,
    validate_transition,
    is_editable,
)
from ..domain.documents.ports.object_storage_port import ObjectStoragePort
from ..models.base import utcnow
from ..models.document import Document, DocumentType
from ..models.document_history import HistoryAction
from ..models.extracted_data import ExtractedData
from ..models.user import User
from ..observability.metrics import document_transitions_total

logger = logging.getLogger(__name__)


class DocumentNotFoundError(Exception):
    """Document does not exist or is not visible to the caller."""

    def __init__(self, document_id: UUID):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class DocumentNotEditableError(Exception):
    """Extracted data cannot be edited in the document's current status."""

    def __init__(self, status: DocumentStatus):
        self.status = status
        super().__init__(f"Document data is not editable in status {status.value}")


class UploadValidationError(ValueError):
    """Uploaded file is not an acceptable image."""
    pass


# Reviewer decision → (target status, history action)
REVIEW_ACTIONS = {
    HistoryAction.CONFIRMED: DocumentStatus.CONFIRMED,
    HistoryAction.REJECTED: DocumentStatus.REJECTED,
    HistoryAction.REVIEWED: DocumentStatus.REVIEWED,
    HistoryAction.REVIEW_REJECTED: DocumentStatus.REVIEW_REJECTED,
}

LIST_FILTERS = {
    "all": None,
    "pending": PENDING_STATUSES,
    "confirmed": frozenset({DocumentStatus.CONFIRMED}),
    "rejected": frozenset({DocumentStatus.REJECTED}),
}


def apply_transition(
    db: Session,
    document: Document,
    to_status: DocumentStatus,
    action: HistoryAction,
    operator_id: Optional[UUID],
    changes: Optional[Dict] = None,
) -> Document:
    """Move document to to_status and append the history entry.

    The write is conditional on the status the document was loaded with, so a
    concurrent change (e.g. the OCR worker taking the document) is not
    overwritten.

    Raises:
        StateTransitionError: If the move is not allowed from the current status
    """
    from_status = DocumentStatus(document.status)
    validate_transition(from_status, to_status)

    updated = (
        db.query(Document)
        .filter(Document.id == document.id, Document.status == from_status.value)
        .update(
            {Document.status: to_status.value, Document.updated_at: utcnow()},
            synchronize_session=False,
        )
    )
    if updated == 0:
        db.refresh(document, attribute_names=["status"])
        logger.info(
            f"Document transition lost: expected {from_status.value}, found {document.status}",
            extra={"document_id": document.id},
        )
        raise StateTransitionError(DocumentStatus(document.status), to_status)

    db.refresh(document, attribute_names=["status", "updated_at"])
    append_history(db, document.id, action, operator_id=operator_id, changes=changes)
    document_transitions_total.labels(action=action.value).inc()

    logger.info(
        f"Document transition: {from_status.value} -> {to_status.value}",
        extra={"document_id": document.id},
    )
    return document


def get_owned_document(db: Session, document_id: UUID, owner: User) -> Document:
    """Load a document owned by owner.

    Raises:
        DocumentNotFoundError: If missing or owned by someone else
    """
    document = (
        db.query(Document)
        .filter(Document.id == document_id, Document.owner_id == owner.id)
        .first()
    )
    if document is None:
        raise DocumentNotFoundError(document_id)
    return document


def get_document(db: Session, document_id: UUID) -> Document:
    """Load a document regardless of owner (second-pass review)."""
    document = db.get(Document, document_id)
    if document is None:
        raise DocumentNotFoundError(document_id)
    return document


def validate_upload(mime_type: Optional[str], size_bytes: int, max_bytes: int) -> None:
    if not mime_type or not mime_type.startswith("image/"):
        raise UploadValidationError("画像ファイルを選択してください")
    if size_bytes == 0:
        raise UploadValidationError("ファイルが空です")
    if size_bytes > max_bytes:
        raise UploadValidationError("ファイルサイズは5MB以下にしてください")


async def create_document(
    db: Session,
    storage: ObjectStoragePort,
    owner: User,
    document_type: DocumentType,
    file: BinaryIO,
    filename: str,
    mime_type: str,
) -> Document:
    """Store the image and create the document, its empty data row and an
    `uploaded` history entry. The caller commits.
    """
    stored = await storage.store_file(
        file=file,
        owner_id=owner.id,
        filename=filename,
        mime_type=mime_type,
    )

    validate_transition(None, DocumentStatus.UPLOADED)
    document = Document(
        owner_id=owner.id,
        document_type=DocumentType(document_type).value,
        status=DocumentStatus.UPLOADED.value,
        image_object_key=stored.storage_key,
    )
    db.add(document)
    db.flush()

    db.add(ExtractedData(document_id=document.id, name="", address="", birth_date=None))
    append_history(db, document.id, HistoryAction.UPLOADED, operator_id=owner.id)
    document_transitions_total.labels(action=HistoryAction.UPLOADED.value).inc()

    logger.info(
        f"Document created: type={document.document_type}, key={stored.storage_key}",
        extra={"document_id": document.id},
    )
    return document


def ensure_extracted_data(db: Session, document: Document) -> ExtractedData:
    data = document.extracted_data
    if data is None:
        data = ExtractedData(document_id=document.id, name="", address="", birth_date=None)
        db.add(data)
        db.flush()
        document.extracted_data = data
    return data


def update_extracted_data(
    db: Session,
    document: Document,
    operator: User,
    name: str,
    birth_date: Optional[date],
    address: str,
) -> ExtractedData:
    """Overwrite the extracted fields by hand and log old/new values.

    Raises:
        DocumentNotEditableError: If the status does not allow editing
    """
    status = DocumentStatus(document.status)
    if not is_editable(status):
        raise DocumentNotEditableError(status)

    data = ensure_extracted_data(db, document)
    old = data.fields()

    data.name = name
    data.birth_date = birth_date
    data.address = address
    data.updated_at = utcnow()
    document.updated_at = data.updated_at

    append_history(
        db,
        document.id,
        HistoryAction.MODIFIED,
        operator_id=operator.id,
        changes={"old": old, "new": data.fields()},
    )
    document_transitions_total.labels(action=HistoryAction.MODIFIED.value).inc()
    return data


def record_review(
    db: Session,
    document: Document,
    action: HistoryAction,
    operator: User,
) -> Document:
    """Apply a confirm/reject/review/review-reject decision.

    Raises:
        StateTransitionError: If the decision is not allowed in the current status
    """
    return apply_transition(db, document, REVIEW_ACTIONS[action], action, operator.id)


def list_documents(db: Session, owner: User, filter_name: str = "all") -> List[Document]:
    """Owner's documents newest first, optionally narrowed by a list filter.

    Raises:
        KeyError: For an unknown filter name
    """
    statuses = LIST_FILTERS[filter_name]
    query = db.query(Document).filter(Document.owner_id == owner.id)
    if statuses is not None:
        query = query.filter(Document.status.in_([s.value for s in statuses]))
    return query.order_by(Document.created_at.desc()).all()


def get_dashboard_stats(db: Session, owner: User) -> Dict[str, int]:
    """Count the owner's documents per dashboard bucket."""
    rows = (
        db.query(Document.status, func.count(Document.id))
        .filter(Document.owner_id == owner.id)
        .group_by(Document.status)
        .all()
    )
    counts = {status: count for status, count in rows}

    def count(*statuses: DocumentStatus) -> int:
        return sum(counts.get(s.value, 0) for s in statuses)

    return {
        "total": sum(counts.values()),
        "uploaded": count(*PENDING_STATUSES),
        "review_pending": count(DocumentStatus.CONFIRMED),
        "reviewed": count(DocumentStatus.REVIEWED),
        "rejected": count(DocumentStatus.REJECTED),
        "review_rejected": count(DocumentStatus.REVIEW_REJECTED),
    }
