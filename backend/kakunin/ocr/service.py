"""OCR orchestration for a single document.

Drives one document through uploaded → ocr_processing → ocr_completed, or back
to uploaded (manual entry) when OCR cannot produce text. Every terminal outcome
is an OcrOutcome; callers never see an exception once the document has been
moved to ocr_processing.

No database transaction is held open across the image fetch or the vision call:
the move into ocr_processing is committed first, and the result is written in
a second transaction.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..documents.service import (
    DocumentNotFoundError,
    apply_transition,
    ensure_extracted_data,
    get_owned_document,
)
from ..audit.service import append_history
from ..domain.documents.document_status import DocumentStatus, StateTransitionError
from ..domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError
from ..domain.extraction.field_extractor import ExtractedFields, extract_fields
from ..domain.ocr.ports import (
    TextDetectionPort,
    TextDetectionRateLimitError,
    TextDetectionServiceError,
)
from ..infrastructure.vision.image_fetcher import ImageFetchError, fetch_image_base64
from ..models.base import utcnow
from ..models.document import Document
from ..models.document_history import HistoryAction
from ..models.user import User
from ..observability.metrics import (
    document_transitions_total,
    ocr_duration_seconds,
    ocr_requests_total,
)

logger = logging.getLogger(__name__)

# Persisted as ocr_error_message when the vision API finds no text
NO_TEXT_MESSAGE = "テキストが検出されませんでした"

# Field names recorded in history; values never are
EXTRACTED_FIELD_NAMES = ["name", "birth_date", "address"]


class OcrErrorCode(str, Enum):
    OCR_NOT_CONFIGURED = "OCR_NOT_CONFIGURED"
    OCR_RATE_LIMIT_EXCEEDED = "OCR_RATE_LIMIT_EXCEEDED"
    OCR_NO_TEXT = "OCR_NO_TEXT"
    OCR_API_ERROR = "OCR_API_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
    OCR_ALREADY_RUNNING = "OCR_ALREADY_RUNNING"
    OCR_NOT_ALLOWED = "OCR_NOT_ALLOWED"


@dataclass
class OcrOutcome:
    """Terminal result of one OCR request."""
    success: bool
    fallback: bool = False
    error: Optional[OcrErrorCode] = None
    data: Optional[dict] = field(default=None)

    @classmethod
    def succeeded(cls, fields: ExtractedFields) -> "OcrOutcome":
        return cls(success=True, data=fields.to_dict())

    @classmethod
    def fell_back(cls, error: OcrErrorCode) -> "OcrOutcome":
        return cls(success=False, fallback=True, error=error)

    @classmethod
    def refused(cls, error: OcrErrorCode) -> "OcrOutcome":
        return cls(success=False, error=error)

    def to_response(self) -> dict:
        body = {"success": self.success}
        if self.fallback:
            body["fallback"] = True
        if self.error is not None:
            body["error"] = self.error.value
        if self.data is not None:
            body["data"] = self.data
        return body


class OcrService:
    """Runs OCR for documents owned by the calling user.

    Args:
        db: Database session (committed by this service)
        storage: Adapter for the private document bucket, or None if unavailable
        text_detector: Vision client, or None when OCR is not configured
        image_fetcher: Callable(url, chunk_bytes, max_bytes, timeout_seconds) -> base64 str
    """

    def __init__(
        self,
        db: Session,
        storage: Optional[ObjectStoragePort],
        text_detector: Optional[TextDetectionPort],
        settings: Optional[Settings] = None,
        image_fetcher: Callable[..., str] = fetch_image_base64,
    ):
        self.db = db
        self.storage = storage
        self.text_detector = text_detector
        self.settings = settings or get_settings()
        self.image_fetcher = image_fetcher

    async def run(self, document_id: UUID, user: User) -> OcrOutcome:
        """Run OCR on one document.

        Raises:
            DocumentNotFoundError: If the document is missing or not owned by user
        """
        if self.text_detector is None:
            logger.warning("OCR requested but GOOGLE_VISION_API_KEY is not set")
            ocr_requests_total.labels(outcome=OcrErrorCode.OCR_NOT_CONFIGURED.value).inc()
            return OcrOutcome.fell_back(OcrErrorCode.OCR_NOT_CONFIGURED)

        document = get_owned_document(self.db, document_id, user)

        refused = self._start(document, user.id)
        if refused is not None:
            ocr_requests_total.labels(outcome=refused.error.value).inc()
            return refused

        started = time.monotonic()
        try:
            outcome = await self._extract(document_id, document.image_object_key, user.id)
        except Exception:
            logger.exception("Unexpected OCR failure", extra={"document_id": document_id})
            outcome = self._fail(
                document_id,
                user.id,
                OcrErrorCode.UNEXPECTED_ERROR,
                "予期しないエラーが発生しました",
            )
        finally:
            ocr_duration_seconds.observe(time.monotonic() - started)

        ocr_requests_total.labels(
            outcome="success" if outcome.success else outcome.error.value
        ).inc()
        return outcome

    def _start(self, document: Document, operator_id: UUID) -> Optional[OcrOutcome]:
        """Conditionally move uploaded → ocr_processing and commit.

        Returns a refusal outcome when another attempt is running or the
        status does not allow OCR.
        """
        now = utcnow()
        updated = (
            self.db.query(Document)
            .filter(
                Document.id == document.id,
                Document.status == DocumentStatus.UPLOADED.value,
            )
            .update(
                {Document.status: DocumentStatus.OCR_PROCESSING.value, Document.updated_at: now},
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.db.rollback()
            self.db.refresh(document)
            logger.info(
                f"OCR refused: status={document.status}",
                extra={"document_id": document.id},
            )
            if document.status == DocumentStatus.OCR_PROCESSING.value:
                return OcrOutcome.refused(OcrErrorCode.OCR_ALREADY_RUNNING)
            return OcrOutcome.refused(OcrErrorCode.OCR_NOT_ALLOWED)

        append_history(self.db, document.id, HistoryAction.OCR_STARTED, operator_id=operator_id)
        document_transitions_total.labels(action=HistoryAction.OCR_STARTED.value).inc()
        self.db.commit()
        self.db.refresh(document)
        logger.info("OCR started", extra={"document_id": document.id})
        return None

    async def _extract(self, document_id: UUID, object_key: str, operator_id: UUID) -> OcrOutcome:
        settings = self.settings
        try:
            if self.storage is None:
                raise StorageError("Document storage is not available")
            signed_url = await self.storage.generate_presigned_url(
                object_key, expires_in_seconds=settings.OCR_SIGNED_URL_TTL_SECONDS
            )
            image_base64 = await asyncio.to_thread(
                self.image_fetcher,
                signed_url,
                settings.IMAGE_FETCH_CHUNK_BYTES,
                settings.MAX_IMAGE_BYTES,
                settings.VISION_TIMEOUT_SECONDS,
            )
            full_text = await asyncio.to_thread(self.text_detector.detect_document_text, image_base64)
        except TextDetectionRateLimitError:
            return self._fail(
                document_id,
                operator_id,
                OcrErrorCode.OCR_RATE_LIMIT_EXCEEDED,
                OcrErrorCode.OCR_RATE_LIMIT_EXCEEDED.value,
            )
        except (TextDetectionServiceError, ImageFetchError, StorageError, FileNotFoundError) as e:
            logger.warning(
                f"OCR external call failed: {type(e).__name__}",
                extra={"document_id": document_id},
            )
            return self._fail(document_id, operator_id, OcrErrorCode.OCR_API_ERROR, str(e))

        logger.info(f"Text detected: length={len(full_text)}", extra={"document_id": document_id})
        if not full_text:
            return self._fail(document_id, operator_id, OcrErrorCode.OCR_NO_TEXT, NO_TEXT_MESSAGE)

        fields = extract_fields(full_text)
        self._store(document_id, operator_id, fields)
        return OcrOutcome.succeeded(fields)

    def _store(self, document_id: UUID, operator_id: UUID, fields: ExtractedFields) -> None:
        """Overwrite extracted data and move to ocr_completed."""
        document = self.db.get(Document, document_id)
        data = ensure_extracted_data(self.db, document)

        now = utcnow()
        data.name = fields.name or ""
        data.birth_date = date.fromisoformat(fields.birth_date) if fields.birth_date else None
        data.address = fields.address or ""
        data.ocr_executed_at = now
        data.ocr_error_message = None
        data.updated_at = now

        apply_transition(
            self.db,
            document,
            DocumentStatus.OCR_COMPLETED,
            HistoryAction.OCR_EXTRACTED,
            operator_id,
            changes={"extracted_fields": list(EXTRACTED_FIELD_NAMES)},
        )
        self.db.commit()

        logger.info(
            "OCR completed: name=%s, birth_date=%s, address=%s",
            "found" if fields.name else "missing",
            "found" if fields.birth_date else "missing",
            "found" if fields.address else "missing",
            extra={"document_id": document_id},
        )

    def _fail(
        self,
        document_id: UUID,
        operator_id: UUID,
        code: OcrErrorCode,
        message: str,
    ) -> OcrOutcome:
        """Record the error and return the document to manual entry.

        When the error itself cannot be recorded the document stays in
        ocr_processing; that is logged at ERROR with the document id so it can
        be reset by hand, and the caller still gets the fallback outcome.
        """
        self.db.rollback()
        try:
            document = self.db.get(Document, document_id)
            if document is not None and document.status == DocumentStatus.OCR_PROCESSING.value:
                data = ensure_extracted_data(self.db, document)
                data.ocr_error_message = message
                data.updated_at = utcnow()
                apply_transition(
                    self.db,
                    document,
                    DocumentStatus.UPLOADED,
                    HistoryAction.OCR_FAILED,
                    operator_id,
                    changes={"error": code.value},
                )
                self.db.commit()
        except (SQLAlchemyError, StateTransitionError):
            self.db.rollback()
            logger.error(
                f"OCR failure could not be recorded: error={code.value}",
                extra={"document_id": document_id},
                exc_info=True,
            )
            return OcrOutcome.fell_back(code)

        logger.warning(f"OCR fell back to manual entry: error={code.value}", extra={"document_id": document_id})
        return OcrOutcome.fell_back(code)


__all__ = [
    "DocumentNotFoundError",
    "NO_TEXT_MESSAGE",
    "OcrErrorCode",
    "OcrOutcome",
    "OcrService",
]
