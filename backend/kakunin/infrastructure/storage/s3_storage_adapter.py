"""S3 Storage Adapter - Implementation of ObjectStoragePort using boto3.

Works against AWS S3, MinIO and other S3-compatible services. Two buckets
use it: the private document-image bucket (read through short-lived
presigned URLs only) and the batch-export bucket (one CSV per JST day,
overwritten on rerun).

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import logging
import time
from contextlib import contextmanager
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterator, Optional
from uuid import UUID

import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from ...domain.documents.ports.object_storage_port import (
    ObjectStoragePort,
    StorageError,
    StoredFile,
)
from .storage_config import StorageConfig

logger = logging.getLogger(__name__)

__all__ = ["S3StorageAdapter", "StorageError", "build_storage_adapter"]

_MISSING_KEY_CODES = ("404", "NoSuchKey")


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


class S3StorageAdapter(ObjectStoragePort):
    """Object storage on one S3 bucket.

    Image keys are {owner_id}/{epoch_millis}{.ext}; export keys are chosen
    by the caller (YYYY-MM-DD.csv).
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "ap-northeast-1",
    ):
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
            )
        except NoCredentialsError as e:
            raise StorageError(f"Invalid S3 credentials: {e}")
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

        self.bucket_name = bucket_name
        self.region = region
        logger.info(
            f"S3 storage ready: bucket={bucket_name}, "
            f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
        )

    @contextmanager
    def _s3_errors(self, failure: str, storage_key: str, missing_is_not_found: bool = False) -> Iterator[None]:
        """Translate boto3 errors into StorageError (or FileNotFoundError for missing keys)."""
        try:
            yield
        except ClientError as e:
            error_code = _error_code(e)
            if missing_is_not_found and error_code in _MISSING_KEY_CODES:
                logger.warning(f"Object not found: bucket={self.bucket_name}, storage_key={storage_key}")
                raise FileNotFoundError(f"File not found: {storage_key}")
            logger.error(f"{failure}: bucket={self.bucket_name}, storage_key={storage_key}, error={error_code}")
            raise StorageError(f"{failure}: {error_code}")
        except Exception as e:
            logger.error(f"{failure}: bucket={self.bucket_name}, storage_key={storage_key}, error={e}")
            raise StorageError(f"{failure}: {e}")

    async def store_file(
        self,
        file: BinaryIO,
        owner_id: UUID,
        filename: str,
        mime_type: str,
    ) -> StoredFile:
        content = file.read()
        if not content:
            raise ValueError("Cannot store empty file")

        storage_key = self._image_key(owner_id, filename)
        with self._s3_errors("Failed to upload file", storage_key):
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=storage_key,
                Body=BytesIO(content),
                ContentType=mime_type,
            )

        logger.info(f"Stored image: storage_key={storage_key}, size={len(content)}, mime_type={mime_type}")
        return StoredFile(storage_key=storage_key, size_bytes=len(content), mime_type=mime_type)

    async def put_object(self, storage_key: str, body: bytes, content_type: str) -> str:
        """Write body at storage_key, overwriting any existing object."""
        with self._s3_errors("Failed to write object", storage_key):
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=storage_key,
                Body=body,
                ContentType=content_type,
            )

        logger.info(f"Wrote object: bucket={self.bucket_name}, storage_key={storage_key}, size={len(body)}")
        return storage_key

    async def retrieve_file(self, storage_key: str) -> BinaryIO:
        with self._s3_errors("Failed to retrieve file", storage_key, missing_is_not_found=True):
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=storage_key)
        return response["Body"]

    async def file_exists(self, storage_key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=storage_key)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code not in _MISSING_KEY_CODES:
                logger.warning(f"Existence check failed: storage_key={storage_key}, error={error_code}")
            return False
        return True

    async def generate_presigned_url(
        self,
        storage_key: str,
        expires_in_seconds: int = 3600,
    ) -> str:
        if not await self.file_exists(storage_key):
            raise FileNotFoundError(f"File not found: {storage_key}")

        with self._s3_errors("Failed to generate presigned URL", storage_key):
            url = self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": storage_key},
                ExpiresIn=expires_in_seconds,
            )

        logger.debug(f"Presigned GET: storage_key={storage_key}, expires_in={expires_in_seconds}s")
        return url

    @staticmethod
    def _image_key(owner_id: UUID, filename: str) -> str:
        """{owner_id}/{epoch_millis}{.ext}, extension lowercased.

        Example:
            >>> S3StorageAdapter._image_key(UUID('a1b2c3d4-e5f6-7890-abcd-ef1234567890'), 'card.JPG')
            'a1b2c3d4-e5f6-7890-abcd-ef1234567890/1767225600000.jpg'
        """
        epoch_millis = int(time.time() * 1000)
        return f"{owner_id}/{epoch_millis}{Path(filename).suffix.lower()}"

    async def verify_bucket_exists(self) -> bool:
        """Used by the health check.

        Raises:
            StorageError: If the bucket is missing or unreachable
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code == "404":
                raise StorageError(f"Bucket '{self.bucket_name}' does not exist.")
            raise StorageError(f"Failed to verify bucket: {error_code}")
        except Exception as e:
            raise StorageError(f"Failed to verify bucket: {e}")
        return True


def build_storage_adapter(config: StorageConfig) -> S3StorageAdapter:
    return S3StorageAdapter(
        endpoint_url=config.endpoint_url,
        access_key=config.access_key,
        secret_key=config.secret_key,
        bucket_name=config.bucket_name,
        region=config.region,
    )
