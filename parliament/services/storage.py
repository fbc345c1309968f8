"""Bucketed object storage for Minute Book documents."""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

import aiofiles
import aiofiles.os
from fastapi.concurrency import run_in_threadpool

from parliament.core.config import get_settings
from parliament.core.exceptions import (
    InvalidObjectPathError,
    ObjectExistsError,
    ObjectNotFoundError,
    StorageError,
)
from parliament.core.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredObject:
    """A listing entry for one object in a bucket."""

    bucket: str
    name: str
    size: int
    created_at: datetime


class StorageService:
    """
    Object storage on the local filesystem.

    Objects live at ``<root>/<bucket>/<name>`` where ``name`` is a
    slash-separated path such as ``holdings/resolutions/<id>.pdf``.
    """

    def __init__(self, root: Path | None = None):
        self.root = Path(root or settings.storage_path)

    def _object_path(self, bucket: str, name: str) -> Path:
        """Map an object name to a filesystem path inside its bucket."""
        clean = (name or "").strip().lstrip("/")
        parts = PurePosixPath(clean).parts
        if not clean or not bucket or any(p in ("..", ".") for p in parts):
            raise InvalidObjectPathError(details={"bucket": bucket, "name": name})
        return self.root.joinpath(bucket, *parts)

    async def exists(self, bucket: str, name: str) -> bool:
        try:
            path = self._object_path(bucket, name)
        except InvalidObjectPathError:
            return False
        return await aiofiles.os.path.isfile(path)

    async def upload(
        self,
        bucket: str,
        name: str,
        data: bytes,
        upsert: bool = True,
    ) -> StoredObject:
        """
        Store ``data`` under ``bucket/name``.

        Args:
            bucket: Bucket name
            name: Object path inside the bucket
            data: Object content
            upsert: Overwrite an existing object instead of failing

        Returns:
            The stored object's listing entry
        """
        path = self._object_path(bucket, name)
        if not upsert and await aiofiles.os.path.exists(path):
            raise ObjectExistsError(details={"bucket": bucket, "name": name})

        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(details=f"upload {bucket}/{name} failed: {e}") from e

        logger.debug("object_uploaded", bucket=bucket, name=name, size=len(data))
        return self._entry(bucket, name, await aiofiles.os.stat(path))

    async def download(self, bucket: str, name: str) -> bytes:
        path = self._object_path(bucket, name)
        if not await aiofiles.os.path.isfile(path):
            raise ObjectNotFoundError(details={"bucket": bucket, "name": name})
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise StorageError(details=f"download {bucket}/{name} failed: {e}") from e

    async def delete(self, bucket: str, name: str) -> bool:
        """Delete an object; returns False when it did not exist."""
        path = self._object_path(bucket, name)
        if not await aiofiles.os.path.isfile(path):
            return False
        await aiofiles.os.remove(path)
        return True

    async def list_objects(self, bucket: str) -> list[StoredObject]:
        """List every object in a bucket, newest first."""
        bucket_root = self.root / bucket
        if not await aiofiles.os.path.isdir(bucket_root):
            return []
        # os.walk blocks, so it runs in the threadpool
        return await run_in_threadpool(self._scan, bucket, bucket_root)

    def _scan(self, bucket: str, bucket_root: Path) -> list[StoredObject]:
        objects = []
        for dirpath, _, filenames in os.walk(bucket_root):
            for filename in filenames:
                path = Path(dirpath) / filename
                name = path.relative_to(bucket_root).as_posix()
                objects.append(self._entry(bucket, name, path.stat()))

        objects.sort(key=lambda o: o.created_at, reverse=True)
        return objects

    def _entry(self, bucket: str, name: str, stat: os.stat_result) -> StoredObject:
        return StoredObject(
            bucket=bucket,
            name=name,
            size=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )


# Singleton instance
storage_service = StorageService()
