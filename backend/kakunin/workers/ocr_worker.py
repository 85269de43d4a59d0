"""OCR worker - Celery task run on upload completion.

The HTTP trigger (POST /api/v1/ocr/extract) and this task share OcrService,
so both produce the same document transitions and history entries.
"""

import asyncio
import logging
from typing import Any, Dict

from celery import shared_task

from ..database import SessionLocal
from ..documents.service import DocumentNotFoundError
from ..ocr.dependencies import get_image_fetcher, get_ocr_storage, get_text_detector
from ..ocr.service import OcrService
from .base import load_active_user, parse_uuid

logger = logging.getLogger(__name__)


@shared_task(name="ocr.run_document", bind=True)
def run_ocr_task(self, document_id: str, user_id: str) -> Dict[str, Any]:
    """Run OCR for a document on behalf of its owner.

    Args:
        document_id: UUID string of the uploaded document
        user_id: UUID string of the owner who uploaded it

    Returns:
        Dict with the OCR response body plus document_id

    Example:
        run_ocr_task.delay(document_id=str(document.id), user_id=str(user.id))
    """
    doc_uuid = parse_uuid(document_id, "document_id")
    user_uuid = parse_uuid(user_id, "user_id")

    session = SessionLocal()
    try:
        user = load_active_user(session, user_uuid)
        service = OcrService(
            session,
            get_ocr_storage(),
            get_text_detector(),
            image_fetcher=get_image_fetcher(),
        )
        outcome = asyncio.run(service.run(doc_uuid, user))
        result = outcome.to_response()
        # Extracted values stay in the database, not in the result backend
        result.pop("data", None)
        result["document_id"] = document_id
        logger.info(f"OCR task finished: success={outcome.success}", extra={"document_id": document_id})
        return result

    except DocumentNotFoundError:
        logger.warning("OCR task target not found", extra={"document_id": document_id})
        return {"success": False, "error": "DOCUMENT_NOT_FOUND", "document_id": document_id}

    finally:
        session.close()
