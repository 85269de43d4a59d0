from .s3_storage_adapter import S3StorageAdapter, StorageError, build_storage_adapter
from .storage_config import StorageConfig, load_storage_config, validate_storage_config

__all__ = [
    "S3StorageAdapter",
    "StorageError",
    "build_storage_adapter",
    "StorageConfig",
    "load_storage_config",
    "validate_storage_config",
]
