# app/storage/__init__.py
"""
Storage provider abstraction for case assets.

Asset bytes are stored in object storage (S3), not Postgres.
The lifecycle only needs batch delete and signed-URL creation.
"""

from app.storage.base import (
    DEFAULT_SIGNED_URL_SECONDS,
    DeleteObjectsResult,
    StorageProvider,
)
from app.storage.factory import build_storage_provider, get_storage_provider

__all__ = [
    "StorageProvider",
    "DeleteObjectsResult",
    "DEFAULT_SIGNED_URL_SECONDS",
    "build_storage_provider",
    "get_storage_provider",
]
