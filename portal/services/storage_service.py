"""
Object storage for uploaded registration documents.

`LocalObjectStorage` writes objects below STORAGE_ROOT/<bucket>/ with aiofiles
and serves them from STORAGE_PUBLIC_URL. Objects are never overwritten.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Optional, Protocol

import aiofiles
import aiofiles.os

from portal.config import settings
from portal.exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    """Contract the registration orchestrator depends on."""

    async def upload(self, path: str, data: bytes, content_type: str) -> str: ...

    def get_public_url(self, path: str) -> str: ...


def document_path(
    user_id: str,
    document_type: str,
    file_name: str,
    timestamp_ms: Optional[int] = None,
    token: Optional[str] = None,
) -> str:
    """
    `{user_id}/{document_type}/{timestamp}[-{token}]-{file_name}`.
    `token` tells apart files staged under the same name in one batch.
    """
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    prefix = f"{ts}-{token}" if token else str(ts)
    return f"{user_id}/{document_type}/{prefix}-{file_name}"


class LocalObjectStorage:
    """
    Parameters
    ----------
    root            : directory holding all buckets
    bucket          : bucket name (first path segment under root)
    public_base_url : URL prefix the bucket is served from
    """

    def __init__(
        self,
        root: Optional[str] = None,
        bucket: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ) -> None:
        self._root = root or settings.STORAGE_ROOT
        self._bucket = bucket or settings.STORAGE_BUCKET
        self._public_base_url = (public_base_url or settings.STORAGE_PUBLIC_URL).rstrip("/")

    def _full_path(self, path: str) -> str:
        bucket_dir = os.path.abspath(os.path.join(self._root, self._bucket))
        full = os.path.abspath(os.path.join(bucket_dir, path))
        if not full.startswith(bucket_dir + os.sep):
            raise StorageError(path, "path escapes the bucket")
        return full

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        full = self._full_path(path)
        if await aiofiles.os.path.exists(full):
            raise StorageError(path, "object already exists")
        try:
            await aiofiles.os.makedirs(os.path.dirname(full), exist_ok=True)
            async with aiofiles.open(full, "wb") as f:
                await f.write(data)
        except OSError as exc:
            raise StorageError(path, str(exc)) from exc

        logger.debug("Stored %s (%d bytes, %s)", path, len(data), content_type)
        return path

    def get_public_url(self, path: str) -> str:
        return f"{self._public_base_url}/{self._bucket}/{path}"

    async def exists(self, path: str) -> bool:
        return await aiofiles.os.path.exists(self._full_path(path))
