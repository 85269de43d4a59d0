"""Fetch a document image through a presigned URL and encode it as base64.

The body is streamed and encoded chunk by chunk so that no step needs to
hold more than one chunk of raw bytes besides the growing base64 output.
"""

import base64
import logging
from typing import Iterable, Iterator

import requests

logger = logging.getLogger(__name__)


class ImageFetchError(Exception):
    """Raised when an image cannot be fetched or exceeds the size limit."""
    pass


def encode_base64_chunked(chunks: Iterable[bytes]) -> Iterator[str]:
    """Encode a byte stream to base64 piece by piece.

    Chunks of arbitrary length are accepted; up to two trailing bytes are
    carried into the next chunk so that every emitted piece ends on a 3-byte
    boundary and the concatenation equals base64 of the whole stream.
    """
    remainder = b""
    for chunk in chunks:
        if not chunk:
            continue
        data = remainder + chunk
        cut = len(data) - (len(data) % 3)
        remainder = data[cut:]
        if cut:
            yield base64.b64encode(data[:cut]).decode("ascii")
    if remainder:
        yield base64.b64encode(remainder).decode("ascii")


def _limited(chunks: Iterable[bytes], max_bytes: int) -> Iterator[bytes]:
    total = 0
    for chunk in chunks:
        total += len(chunk)
        if total > max_bytes:
            raise ImageFetchError(f"Image exceeds {max_bytes} bytes")
        yield chunk


def fetch_image_base64(
    url: str,
    chunk_bytes: int = 24576,
    max_bytes: int = 5 * 1024 * 1024,
    timeout_seconds: float = 30.0,
) -> str:
    """Download url and return its body as base64 text.

    Raises:
        ImageFetchError: On network failure, non-2xx status, empty body or oversize image
    """
    try:
        with requests.get(url, stream=True, timeout=timeout_seconds) as response:
            if not response.ok:
                raise ImageFetchError(f"Image fetch failed: status={response.status_code}")
            encoded = "".join(
                encode_base64_chunked(_limited(response.iter_content(chunk_size=chunk_bytes), max_bytes))
            )
    except requests.RequestException as e:
        raise ImageFetchError(f"Image fetch failed: {type(e).__name__}") from e

    if not encoded:
        raise ImageFetchError("Image fetch returned an empty body")

    logger.info(f"Fetched image: base64_length={len(encoded)}")
    return encoded
