# app/storage/local_provider.py
"""
Local filesystem storage provider for development and testing.

Mimics S3 behavior but stores files locally.
NOT for production use.
"""

import logging
import shutil
import time
from pathlib import Path

from app.config import get_settings
from app.storage.base import DEFAULT_SIGNED_URL_SECONDS, DeleteObjectsResult, StorageProvider

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    """
    Local filesystem storage provider.

    Stores files in a directory structure that mimics S3 keys.

    Configuration:
    - LOCAL_STORAGE_PATH: Base directory (default: ./storage)
    """

    def __init__(self, base_path: str | None = None):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for storage (or LOCAL_STORAGE_PATH setting)
        """
        self._base_path = Path(base_path or get_settings().LOCAL_STORAGE_PATH)
        self._base_path.mkdir(parents=True, exist_ok=True)

        logger.info(f"Local storage initialized: {self._base_path}")

    @property
    def name(self) -> str:
        return "local"

    def _get_path(self, key: str) -> Path:
        """Get filesystem path for key, with path traversal protection."""
        resolved = (self._base_path / key).resolve()
        if not resolved.is_relative_to(self._base_path.resolve()):
            raise ValueError("Path traversal detected")
        return resolved

    def put_object(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        file_path = self._get_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)
        logger.debug(f"Uploaded to local: {key}")
        return key

    def exists(self, key: str) -> bool:
        return self._get_path(key).exists()

    def delete_objects(self, paths: list[str]) -> DeleteObjectsResult:
        """Delete files; missing files count as deleted, like S3."""
        result = DeleteObjectsResult()

        for key in paths:
            try:
                self._get_path(key).unlink(missing_ok=True)
                result.deleted.append(key)
            except (OSError, ValueError) as e:
                logger.warning(f"Local delete failed for {key}: {e}")
                result.failed[key] = str(e)

        return result

    def create_signed_url(self, path: str, expires_in: int = DEFAULT_SIGNED_URL_SECONDS) -> str:
        """file:// URL with an expiry marker; local dev has no real signing."""
        expires_at = int(time.time()) + expires_in
        return f"{self._get_path(path).as_uri()}?expires={expires_at}"

    def cleanup(self) -> None:
        """Remove all stored content (for testing)."""
        if self._base_path.exists():
            shutil.rmtree(self._base_path)
            self._base_path.mkdir(parents=True, exist_ok=True)
