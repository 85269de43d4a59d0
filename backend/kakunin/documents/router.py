"""Document endpoints: upload, list, detail, history, edit and review."""

import logging
from io import BytesIO
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_reviewer, get_current_user
from ..audit.service import list_history
from ..config import get_settings
from ..database import get_db
from ..domain.documents.document_status import DocumentStatus, StateTransitionError, is_editable
from ..domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError
from ..models.document import Document, DocumentType
from ..models.document_history import HistoryAction
from ..models.user import User
from ..storage import document_storage_dependency
from .schemas import DashboardStats, DocumentStatusResponse, ExtractedDataUpdate
from .service import (
    DocumentNotEditableError,
    DocumentNotFoundError,
    UploadValidationError,
    create_document,
    get_dashboard_stats,
    get_document,
    get_owned_document,
    list_documents,
    record_review,
    update_extracted_data,
    validate_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")


def _owned_or_404(db: Session, document_id: UUID, user: User) -> Document:
    try:
        return get_owned_document(db, document_id, user)
    except DocumentNotFoundError:
        raise _not_found()


async def _preview_url(storage: ObjectStoragePort, document: Document) -> Optional[str]:
    try:
        return await storage.generate_presigned_url(
            document.image_object_key,
            expires_in_seconds=get_settings().PREVIEW_SIGNED_URL_TTL_SECONDS,
        )
    except (StorageError, FileNotFoundError) as e:
        logger.warning(f"Preview URL unavailable: {type(e).__name__}", extra={"document_id": document.id})
        return None


def _detail(document: Document, preview_url: Optional[str]) -> dict:
    data = document.extracted_data
    return {
        **document.to_dict(),
        "editable": is_editable(DocumentStatus(document.status)),
        "preview_url": preview_url,
        "extracted_data": data.to_dict() if data else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_document(
    document_type: DocumentType = Form(...),
    file: UploadFile = File(...),
    run_ocr: bool = Query(False, description="Enqueue OCR after the upload completes"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStoragePort = Depends(document_storage_dependency),
):
    """Upload an identity document image.

    Stores the image in the private bucket and creates the document with an
    empty extracted data row. Only image/* files up to 5 MB are accepted.
    """
    content = await file.read()
    try:
        validate_upload(file.content_type, len(content), get_settings().MAX_IMAGE_BYTES)
    except UploadValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        document = await create_document(
            db,
            storage,
            owner=current_user,
            document_type=document_type,
            file=BytesIO(content),
            filename=file.filename or "",
            mime_type=file.content_type,
        )
        db.commit()
    except StorageError as e:
        db.rollback()
        logger.error(f"Upload failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store document image",
        )

    db.refresh(document)

    if run_ocr:
        from ..workers.ocr_worker import run_ocr_task
        run_ocr_task.delay(document_id=str(document.id), user_id=str(current_user.id))

    return document.to_dict()


@router.get("")
async def list_my_documents(
    filter_name: str = Query("all", alias="filter", pattern="^(all|pending|confirmed|rejected)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStoragePort = Depends(document_storage_dependency),
):
    """List the caller's documents, newest first."""
    documents = list_documents(db, current_user, filter_name)
    items = []
    for document in documents:
        item = document.to_dict()
        item["preview_url"] = await _preview_url(storage, document)
        items.append(item)
    return {"items": items, "total": len(items)}


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_dashboard_stats(db, current_user)


@router.get("/{document_id}")
async def get_document_detail(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStoragePort = Depends(document_storage_dependency),
):
    document = _owned_or_404(db, document_id, current_user)
    return _detail(document, await _preview_url(storage, document))


@router.get("/{document_id}/status", response_model=DocumentStatusResponse)
def get_document_status(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    document = _owned_or_404(db, document_id, current_user)
    return DocumentStatusResponse(
        id=str(document.id),
        status=document.status,
        updated_at=document.to_dict()["updated_at"],
    )


@router.get("/{document_id}/history")
def get_document_history(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """History entries, newest first."""
    document = _owned_or_404(db, document_id, current_user)
    return {"items": [entry.to_dict() for entry in list_history(db, document.id)]}


@router.patch("/{document_id}/data")
def edit_extracted_data(
    document_id: UUID,
    payload: ExtractedDataUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Overwrite extracted fields by hand (uploaded / ocr_completed only)."""
    document = _owned_or_404(db, document_id, current_user)
    try:
        data = update_extracted_data(
            db,
            document,
            current_user,
            name=payload.name,
            birth_date=payload.birth_date,
            address=payload.address,
        )
    except DocumentNotEditableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    db.commit()
    db.refresh(data)
    return data.to_dict()


def _review(db: Session, document: Document, action: HistoryAction, user: User) -> dict:
    try:
        record_review(db, document, action, user)
    except StateTransitionError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    db.commit()
    db.refresh(document)
    return document.to_dict()


@router.post("/{document_id}/confirm")
def confirm_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    document = _owned_or_404(db, document_id, current_user)
    return _review(db, document, HistoryAction.CONFIRMED, current_user)


@router.post("/{document_id}/reject")
def reject_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    document = _owned_or_404(db, document_id, current_user)
    return _review(db, document, HistoryAction.REJECTED, current_user)


@router.post("/{document_id}/review")
def review_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    reviewer: User = Depends(get_current_reviewer),
):
    """Second-pass approval of a confirmed document (any owner)."""
    try:
        document = get_document(db, document_id)
    except DocumentNotFoundError:
        raise _not_found()
    return _review(db, document, HistoryAction.REVIEWED, reviewer)


@router.post("/{document_id}/review-reject")
def review_reject_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    reviewer: User = Depends(get_current_reviewer),
):
    """Second-pass rejection; the owner may confirm again afterwards."""
    try:
        document = get_document(db, document_id)
    except DocumentNotFoundError:
        raise _not_found()
    return _review(db, document, HistoryAction.REVIEW_REJECTED, reviewer)
