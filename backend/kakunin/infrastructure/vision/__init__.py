from .google_vision_client import GoogleVisionClient, build_vision_request
from .image_fetcher import ImageFetchError, encode_base64_chunked, fetch_image_base64

__all__ = [
    "GoogleVisionClient",
    "build_vision_request",
    "ImageFetchError",
    "encode_base64_chunked",
    "fetch_image_base64",
]
