"""
Text Detection Port - Abstract interface for OCR providers.

Hexagonal Architecture: the OCR orchestrator depends on this port, not on the
concrete Google Cloud Vision client.
"""

from abc import ABC, abstractmethod


class TextDetectionPort(ABC):
    """
    Abstract interface for document text detection.

    Implementations must handle:
    - API authentication
    - Request formatting for the provider
    - Mapping quota responses to TextDetectionRateLimitError
    - Mapping every other failure to TextDetectionServiceError
    """

    @abstractmethod
    def detect_document_text(self, image_base64: str) -> str:
        """
        Run full-document text detection on one image.

        Args:
            image_base64: Base64-encoded image bytes

        Returns:
            The detected full text, or an empty string when none was found

        Raises:
            TextDetectionRateLimitError: Provider quota exceeded (HTTP 429)
            TextDetectionServiceError: Any other non-2xx, network or parse failure
        """
        pass


# Custom exceptions for text detection
class TextDetectionError(Exception):
    """Base exception for text detection"""
    pass


class TextDetectionRateLimitError(TextDetectionError):
    """Provider quota exceeded"""
    pass


class TextDetectionServiceError(TextDetectionError):
    """Provider unavailable or returned an error or malformed response"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
