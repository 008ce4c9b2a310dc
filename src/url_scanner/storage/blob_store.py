"""MinIO-backed blob store for fetched page bodies.

The ``minio`` client is synchronous, so every call is pushed onto the default
thread-pool executor to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import functools
import io
import logging
from typing import Any, Callable

from minio import Minio

from url_scanner.config.settings import Settings

logger = logging.getLogger(__name__)


def build_minio_client(settings: Settings) -> Minio:
    """Create a :class:`minio.Minio` client from application settings."""
    return Minio(
        settings.minio_endpoint,
        access_key=settings.minio_root_user,
        secret_key=settings.minio_root_password,
        secure=settings.minio_secure,
    )


class MinioBlobStore:
    """Text objects in a single MinIO bucket.

    Args:
        client: Configured MinIO client.
        bucket: Bucket holding every object written through this store.
    """

    def __init__(self, client: Minio, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "MinioBlobStore":
        return cls(build_minio_client(settings), settings.minio_bucket)

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        if not await self._run(self._client.bucket_exists, self._bucket):
            await self._run(self._client.make_bucket, self._bucket)
            logger.info("blob_store: created bucket %s", self._bucket)

    async def put_text(self, key: str, body: str, content_type: str) -> None:
        data = body.encode("utf-8")
        await self._run(
            self._client.put_object,
            self._bucket,
            key,
            io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )

    async def get_text(self, key: str) -> str:
        """Read an object and decode it as UTF-8.

        Raises:
            minio.error.S3Error: If the object does not exist or cannot be read.
            UnicodeDecodeError: If the object is not valid UTF-8.
        """
        return await self._run(self._read, key)

    def _read(self, key: str) -> str:
        response = self._client.get_object(self._bucket, key)
        try:
            return response.read().decode("utf-8")
        finally:
            response.close()
            response.release_conn()
