from .ports import (
    TextDetectionPort,
    TextDetectionError,
    TextDetectionRateLimitError,
    TextDetectionServiceError,
)

__all__ = [
    "TextDetectionPort",
    "TextDetectionError",
    "TextDetectionRateLimitError",
    "TextDetectionServiceError",
]
