# app/storage/factory.py
"""
Storage provider selection.

The purge path and signed-URL callers share one provider per process,
chosen by the STORAGE_PROVIDER setting.
"""

import logging
from functools import lru_cache

from app.config import get_settings
from app.storage.base import StorageProvider

logger = logging.getLogger(__name__)

PROVIDERS = ("s3", "local")


def build_storage_provider(name: str) -> StorageProvider:
    """
    Construct a provider by name.

    Raises:
        ValueError: name is not one of PROVIDERS
    """
    name = name.lower().strip()

    if name == "s3":
        from app.storage.s3_provider import S3StorageProvider
        provider = S3StorageProvider()
    elif name == "local":
        from app.storage.local_provider import LocalStorageProvider
        provider = LocalStorageProvider()
    else:
        raise ValueError(f"Unknown storage provider: {name}. Available: {', '.join(PROVIDERS)}")

    logger.info(f"Storage provider initialized: {provider.name}")
    return provider


@lru_cache
def get_storage_provider() -> StorageProvider:
    """Process-wide provider for the configured STORAGE_PROVIDER."""
    return build_storage_provider(get_settings().STORAGE_PROVIDER)
