"""Process-wide object storage adapters, one per bucket.

Adapters are created lazily on first use so that importing the application
never needs storage credentials.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status

from .config import get_settings
from .domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError
from .infrastructure.storage import build_storage_adapter, load_storage_config

logger = logging.getLogger(__name__)

_document_storage: Optional[ObjectStoragePort] = None
_export_storage: Optional[ObjectStoragePort] = None


def _build(bucket_name: str) -> ObjectStoragePort:
    try:
        adapter = build_storage_adapter(load_storage_config(bucket_name))
    except StorageError:
        raise
    except ValueError as e:
        raise StorageError(f"Storage configuration error: {e}") from e
    logger.info(f"Initialized storage adapter: bucket={bucket_name}")
    return adapter


def get_document_storage() -> ObjectStoragePort:
    """Adapter for the private document image bucket.

    Raises:
        StorageError: If the adapter cannot be built
    """
    global _document_storage
    if _document_storage is None:
        _document_storage = _build(get_settings().DOCUMENTS_BUCKET)
    return _document_storage


def get_export_storage() -> ObjectStoragePort:
    """Adapter for the batch export bucket.

    Raises:
        StorageError: If the adapter cannot be built
    """
    global _export_storage
    if _export_storage is None:
        _export_storage = _build(get_settings().BATCH_EXPORTS_BUCKET)
    return _export_storage


def document_storage_dependency() -> ObjectStoragePort:
    """FastAPI dependency wrapping get_document_storage with a 500 on failure."""
    try:
        return get_document_storage()
    except StorageError as e:
        logger.error(f"Failed to initialize storage adapter: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Storage configuration error",
        )


def reset_storage() -> None:
    """Drop cached adapters (settings reload, tests)."""
    global _document_storage, _export_storage
    _document_storage = None
    _export_storage = None
