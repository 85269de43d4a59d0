"""OCR trigger endpoint.

POST /api/v1/ocr/extract with {"document_id": "..."}.

Status codes: 401 without a bearer credential, 400 for a missing or
unparseable document id, 404 when the caller does not own the document.
Every other outcome is HTTP 200 with
{success, fallback?, error?, data?: {name, birth_date, address}}.
"""

import logging
from typing import Callable, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_user
from ..database import get_db
from ..documents.service import DocumentNotFoundError
from ..domain.documents.ports.object_storage_port import ObjectStoragePort
from ..domain.ocr.ports import TextDetectionPort
from ..models.user import User
from ..observability.metrics import ocr_requests_total
from .dependencies import get_image_fetcher, get_ocr_storage, get_text_detector
from .service import OcrErrorCode, OcrOutcome, OcrService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ocr", tags=["OCR"])


def _error(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": code})


async def _read_document_id(request: Request) -> Optional[object]:
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body.get("document_id")


@router.post("/extract")
async def extract(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: Optional[ObjectStoragePort] = Depends(get_ocr_storage),
    text_detector: Optional[TextDetectionPort] = Depends(get_text_detector),
    image_fetcher: Callable[..., str] = Depends(get_image_fetcher),
):
    """Run OCR on one of the caller's documents."""
    try:
        raw_id = await _read_document_id(request)
    except ValueError:
        logger.warning("OCR request body could not be parsed")
        return _error(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST")

    if not raw_id:
        return _error(status.HTTP_400_BAD_REQUEST, "MISSING_DOCUMENT_ID")

    try:
        document_id = UUID(str(raw_id))
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST")

    try:
        service = OcrService(db, storage, text_detector, image_fetcher=image_fetcher)
        outcome = await service.run(document_id, current_user)
    except DocumentNotFoundError:
        logger.info("OCR target not found", extra={"document_id": document_id})
        return _error(status.HTTP_404_NOT_FOUND, "DOCUMENT_NOT_FOUND")
    except Exception:
        logger.exception("Unexpected error in OCR handler", extra={"document_id": document_id})
        ocr_requests_total.labels(outcome=OcrErrorCode.UNEXPECTED_ERROR.value).inc()
        outcome = OcrOutcome.fell_back(OcrErrorCode.UNEXPECTED_ERROR)

    return JSONResponse(status_code=status.HTTP_200_OK, content=outcome.to_response())
