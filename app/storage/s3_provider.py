# app/storage/s3_provider.py
"""
S3 storage provider implementation using boto3.

Supports:
- AWS S3
- S3-compatible services (MinIO, Supabase Storage S3 gateway, etc.)
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import get_settings
from app.storage.base import DEFAULT_SIGNED_URL_SECONDS, DeleteObjectsResult, StorageProvider

logger = logging.getLogger(__name__)

# S3 batch delete supports up to 1000 objects at a time
DELETE_BATCH_SIZE = 1000


class S3StorageProvider(StorageProvider):
    """
    S3/S3-compatible storage provider.

    Configuration via settings:
    - S3_BUCKET: Bucket name (required)
    - S3_ENDPOINT_URL: Custom endpoint for S3-compatible services
    - S3_REGION: AWS region
    - AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY: credentials
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        client=None,
    ):
        """
        Initialize S3 provider.

        Args:
            bucket: S3 bucket name (or S3_BUCKET setting)
            endpoint_url: Custom endpoint for S3-compatible services
            region: AWS region
            client: Pre-built boto3 client (tests)
        """
        settings = get_settings()
        self._bucket = bucket or settings.S3_BUCKET
        if not self._bucket:
            raise ValueError("S3 bucket required. Set S3_BUCKET env var or pass bucket.")

        self._endpoint_url = endpoint_url or settings.S3_ENDPOINT_URL
        self._region = region or settings.S3_REGION

        if client is None:
            config = Config(
                retries={"max_attempts": 3, "mode": "adaptive"},
                connect_timeout=5,
                read_timeout=30,
            )
            client = boto3.client(
                "s3",
                endpoint_url=self._endpoint_url,
                region_name=self._region,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                config=config,
            )
        self._client = client

        logger.info(f"S3 storage initialized: bucket={self._bucket}")

    @property
    def name(self) -> str:
        return "s3"

    @property
    def bucket(self) -> str:
        return self._bucket

    def put_object(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=content, ContentType=content_type)
            logger.debug(f"Uploaded to S3: {key} ({len(content)} bytes)")
            return key
        except ClientError as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise

    def exists(self, key: str) -> bool:
        """Check if object exists in S3."""
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("404", "NoSuchKey"):
                return False
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((BotoCoreError, ConnectionError)),
        reraise=True,
    )
    def _delete_batch(self, batch: list[str]) -> dict:
        """One DeleteObjects call, retried on transport errors."""
        return self._client.delete_objects(
            Bucket=self._bucket,
            Delete={"Objects": [{"Key": k} for k in batch], "Quiet": False},
        )

    def delete_objects(self, paths: list[str]) -> DeleteObjectsResult:
        """Delete objects in batches of 1000, collecting per-key errors."""
        result = DeleteObjectsResult()

        for i in range(0, len(paths), DELETE_BATCH_SIZE):
            batch = paths[i:i + DELETE_BATCH_SIZE]
            try:
                response = self._delete_batch(batch)
            except (ClientError, BotoCoreError, ConnectionError) as e:
                logger.error(f"S3 batch delete failed ({len(batch)} objects): {e}")
                for key in batch:
                    result.failed[key] = str(e)
                continue

            errors = {err["Key"]: err.get("Message", err.get("Code", "error")) for err in response.get("Errors", [])}
            for key in batch:
                if key in errors:
                    result.failed[key] = errors[key]
                else:
                    result.deleted.append(key)

        return result

    def create_signed_url(self, path: str, expires_in: int = DEFAULT_SIGNED_URL_SECONDS) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": path},
            ExpiresIn=expires_in,
        )
