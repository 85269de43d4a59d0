"""Object Storage Port - Domain interface for S3-compatible storage.

Document images live in a private bucket and are addressed by object key only.
Nothing outside server-side code reads them except through short-lived
presigned URLs. The batch export bucket holds one CSV per JST day.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO
from uuid import UUID


class StorageError(Exception):
    """Storage is unavailable, misconfigured or rejected the operation."""


@dataclass
class StoredFile:
    """Result of an image upload.

    storage_key is {owner_id}/{epoch_millis}{.ext}.
    """
    storage_key: str
    size_bytes: int
    mime_type: str


class ObjectStoragePort(ABC):
    """One adapter instance is bound to one bucket.

    Example Usage:
        stored = await storage.store_file(f, owner_id=user.id, filename='card.jpg', mime_type='image/jpeg')
        url = await storage.generate_presigned_url(stored.storage_key, 60)
    """

    @abstractmethod
    async def store_file(
        self,
        file: BinaryIO,
        owner_id: UUID,
        filename: str,
        mime_type: str,
    ) -> StoredFile:
        """Store an uploaded image under the owner's key prefix.

        Raises:
            StorageError: If the upload fails
            ValueError: If the file is empty
        """

    @abstractmethod
    async def put_object(self, storage_key: str, body: bytes, content_type: str) -> str:
        """Write body at an exact key, replacing any existing object.

        Raises:
            StorageError: If the write fails
        """

    @abstractmethod
    async def retrieve_file(self, storage_key: str) -> BinaryIO:
        """Open a stored object for reading; the caller closes the stream.

        Raises:
            FileNotFoundError: If no object has this key
            StorageError: If retrieval fails
        """

    @abstractmethod
    async def file_exists(self, storage_key: str) -> bool:
        ...

    @abstractmethod
    async def generate_presigned_url(
        self,
        storage_key: str,
        expires_in_seconds: int = 3600,
    ) -> str:
        """Time-limited GET URL (60s for OCR fetches, 3600s for previews).

        Raises:
            FileNotFoundError: If no object has this key
            StorageError: If URL generation fails
        """

    @abstractmethod
    async def verify_bucket_exists(self) -> bool:
        """Raises StorageError if the bound bucket is missing or unreachable."""
