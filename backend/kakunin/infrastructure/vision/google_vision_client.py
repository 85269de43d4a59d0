"""
Google Cloud Vision client - Concrete implementation of TextDetectionPort.

Calls the images:annotate REST endpoint with DOCUMENT_TEXT_DETECTION and reads
the full text from responses[0].fullTextAnnotation.text.
"""

import logging
from typing import Optional

import requests

from ...domain.ocr.ports import (
    TextDetectionPort,
    TextDetectionRateLimitError,
    TextDetectionServiceError,
)

logger = logging.getLogger(__name__)

FEATURE_TYPE = "DOCUMENT_TEXT_DETECTION"


def build_vision_request(image_base64: str) -> dict:
    """Request body for a single-image full-document text detection."""
    return {
        "requests": [
            {
                "image": {"content": image_base64},
                "features": [{"type": FEATURE_TYPE, "maxResults": 1}],
            }
        ]
    }


def read_full_text(payload: dict) -> str:
    """Return responses[0].fullTextAnnotation.text, or '' when any level is absent."""
    responses = payload.get("responses") or []
    if not responses:
        return ""
    annotation = responses[0].get("fullTextAnnotation") or {}
    return annotation.get("text") or ""


class GoogleVisionClient(TextDetectionPort):
    """
    Google Cloud Vision implementation of TextDetectionPort.

    No retries are made. A 429 is reported as TextDetectionRateLimitError so
    the caller can fall back to manual entry.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://vision.googleapis.com/v1/images:annotate",
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            api_key: Vision API key

        Raises:
            ValueError: If API key is not provided
        """
        if not api_key:
            raise ValueError("Google Vision API key not provided. Set GOOGLE_VISION_API_KEY.")
        self.api_key = api_key
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def detect_document_text(self, image_base64: str) -> str:
        try:
            response = self.session.post(
                self.api_url,
                params={"key": self.api_key},
                json=build_vision_request(image_base64),
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning(f"Vision API request failed: {type(e).__name__}")
            raise TextDetectionServiceError(f"Vision API request failed: {type(e).__name__}") from e

        logger.info(f"Vision API response: status={response.status_code}")

        if response.status_code == 429:
            raise TextDetectionRateLimitError("Vision API quota exceeded")

        if not response.ok:
            raise TextDetectionServiceError(
                f"Vision API error: status={response.status_code}, body={response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TextDetectionServiceError("Vision API returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise TextDetectionServiceError("Vision API returned unexpected payload")

        return read_full_text(payload)
