# app/storage/base.py
"""
Storage provider interface for case assets.

Design principles:
- Asset bytes (photos, videos, documents) live in object storage, not Postgres
- Postgres stores only the storage_path of each asset
- Clients read through short-lived signed URLs
- Deletes are batched and report per-object outcome; callers decide
  whether a partial failure matters
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


DEFAULT_SIGNED_URL_SECONDS = 3600


@dataclass
class DeleteObjectsResult:
    """Outcome of a batch delete. failed maps path -> error message."""
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class StorageProvider(ABC):
    """
    Abstract interface for object storage.

    Implementations must handle:
    - Batch delete with partial-failure reporting
    - Signed URL creation for downloads
    - Missing objects on delete (treated as already deleted)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 's3', 'local')."""
        pass

    @abstractmethod
    def put_object(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Store bytes under key.

        Returns:
            The storage path (key) written
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if object exists."""
        pass

    @abstractmethod
    def delete_objects(self, paths: list[str]) -> DeleteObjectsResult:
        """
        Delete a batch of objects.

        Never raises for per-object failures; they are reported in
        DeleteObjectsResult.failed.
        """
        pass

    @abstractmethod
    def create_signed_url(self, path: str, expires_in: int = DEFAULT_SIGNED_URL_SECONDS) -> str:
        """Create a time-limited download URL for path."""
        pass

    def generate_key(self, case_id: str, filename: str, phase: str | None = None) -> str:
        """
        Generate a storage key for a case asset.

        Format: cases/{case_id}/{phase}/{filename}
        """
        if phase:
            return f"cases/{case_id}/{phase}/{filename}"
        return f"cases/{case_id}/{filename}"
