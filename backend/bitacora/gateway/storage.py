"""Object storage for log entry attachments.

S3ObjectStorage talks to any S3-compatible store through boto3; blocking
calls run via asyncio.to_thread() so the event loop is never blocked.
InMemoryObjectStorage keeps objects in a dict for tests and local runs.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import boto3
import structlog

from bitacora.core.exceptions import GatewayError

logger = structlog.get_logger(__name__)


class ObjectStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        ...


class S3ObjectStorage:
    """Uploads attachments to an S3 bucket and returns their public URL.

    Usage:
        storage = S3ObjectStorage(bucket="adjuntos-bitacora")
        url = await storage.upload("ini-1/1700000000000.pdf", data)
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url or None
        self._public_base_url = public_base_url or None

    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        try:
            await asyncio.to_thread(self._put_s3, path, data, content_type)
        except Exception as exc:
            logger.warning(
                "attachment_upload_failed",
                bucket=self._bucket,
                key=path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise GatewayError(f"Upload failed: {exc}") from exc

        logger.info("attachment_uploaded", bucket=self._bucket, key=path, size=len(data))
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{path}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{path}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{path}"

    def _put_s3(self, key: str, body: bytes, content_type: str | None) -> None:
        """Upload bytes to S3. Runs in a thread via asyncio.to_thread()."""
        s3 = boto3.client("s3", region_name=self._region, endpoint_url=self._endpoint_url)
        extra = {"ContentType": content_type} if content_type else {}
        s3.put_object(Bucket=self._bucket, Key=key, Body=body, **extra)


class InMemoryObjectStorage:
    """Dict-backed object store. ``delay`` simulates a slow upload."""

    def __init__(self, bucket: str = "adjuntos-bitacora", delay: float = 0.0) -> None:
        self.bucket = bucket
        self.delay = delay
        self.objects: dict[str, tuple[bytes, str | None]] = {}

    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.objects[path] = (data, content_type)
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"memory://{self.bucket}/{path}"
