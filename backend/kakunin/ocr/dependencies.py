"""Providers for the OCR collaborators, overridable in tests."""

import logging
from typing import Callable, Optional

from ..config import get_settings
from ..domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError
from ..domain.ocr.ports import TextDetectionPort
from ..infrastructure.vision.google_vision_client import GoogleVisionClient
from ..infrastructure.vision.image_fetcher import fetch_image_base64
from ..storage import get_document_storage

logger = logging.getLogger(__name__)


def get_text_detector() -> Optional[TextDetectionPort]:
    """Vision client, or None when GOOGLE_VISION_API_KEY is not set."""
    settings = get_settings()
    if not settings.ocr_configured:
        return None
    return GoogleVisionClient(
        api_key=settings.GOOGLE_VISION_API_KEY,
        api_url=settings.VISION_API_URL,
        timeout_seconds=settings.VISION_TIMEOUT_SECONDS,
    )


def get_ocr_storage() -> Optional[ObjectStoragePort]:
    """Document storage, or None when it cannot be built.

    OCR reports an unavailable store as a fallback outcome instead of a 500.
    """
    try:
        return get_document_storage()
    except StorageError as e:
        logger.error(f"Document storage unavailable for OCR: {e}")
        return None


def get_image_fetcher() -> Callable[..., str]:
    """Downloads a presigned image URL and returns its base64 body."""
    return fetch_image_base64
