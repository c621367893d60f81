# src/storage/s3_store.py — v1
"""S3-compatible durable store (DURABLE_STORE=s3).

Supports AWS S3, MinIO, and other S3-compatible storage.
Requires 'boto3' package: pip install boto3.
"""

from __future__ import annotations

import logging

from bizimages.core.errors import StoreError
from bizimages.storage.base_durable_store import BaseDurableStore

logger = logging.getLogger(__name__)


class S3DurableStore(BaseDurableStore):
    """Publish images to S3-compatible object storage."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
    ) -> None:
        """Initialize S3 store.

        Args:
            bucket: S3 bucket name.
            prefix: Key prefix for all objects (e.g. "directory/").
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
            public_base_url: Override for public URLs (CDN in front of the bucket).
        """
        try:
            import boto3
            from botocore.exceptions import BotoCoreError, ClientError
        except ImportError as e:
            raise ImportError(
                "boto3 package required for S3 durable store: pip install boto3"
            ) from e

        kwargs: dict = {}
        if region:
            kwargs["region_name"] = region
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._s3 = boto3.client("s3", **kwargs)
        self._bucket = bucket
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""
        self._region = region or "us-east-1"
        self._base_url = (public_base_url or "").rstrip("/")
        self._client_error: type[Exception] = ClientError
        self._errors: tuple[type[Exception], ...] = (BotoCoreError, ClientError)

    def _full_key(self, path: str) -> str:
        """Build the full S3 key from a relative path."""
        return f"{self._prefix}{path}"

    async def put_object(
        self, path: str, data: bytes, content_type: str = "image/jpeg"
    ) -> str:
        """Upload bytes and return the object's public URL."""
        key = self._full_key(path)
        try:
            self._s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl="public, max-age=31536000",
            )
        except self._errors as e:
            raise StoreError("put_object", e) from e
        logger.debug("S3 write: s3://%s/%s (%d bytes)", self._bucket, key, len(data))
        return self.public_url(path)

    async def object_exists(self, path: str) -> bool:
        """HEAD the object; a 404 means absent, other failures raise StoreError."""
        key = self._full_key(path)
        try:
            self._s3.head_object(Bucket=self._bucket, Key=key)
            return True
        except self._client_error as e:
            code = str(getattr(e, "response", {}).get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StoreError("object_exists", e) from e
        except self._errors as e:
            raise StoreError("object_exists", e) from e

    def public_url(self, path: str) -> str:
        key = self._full_key(path)
        if self._base_url:
            return f"{self._base_url}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"
