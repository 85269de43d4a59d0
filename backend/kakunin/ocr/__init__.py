from .service import NO_TEXT_MESSAGE, OcrErrorCode, OcrOutcome, OcrService

__all__ = ["NO_TEXT_MESSAGE", "OcrErrorCode", "OcrOutcome", "OcrService"]
