"""
Filesystem-backed object store.

Emulates buckets as directories under a root path. Used in development and
as the object-store double in tests.
"""

import logging
import os
import time
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import quote

from gallery.exceptions import NotFoundError, StorageError
from gallery.storage.base import ObjectStore

logger = logging.getLogger(__name__)


class LocalObjectStore(ObjectStore):
    """Object store that keeps each bucket as a directory on local disk."""

    def __init__(self, root: str, base_url: Optional[str] = None):
        self.root = Path(root).resolve()
        self.base_url = (base_url or "").rstrip("/")

    def _path(self, bucket: str, key: str) -> Path:
        bucket_root = (self.root / bucket).resolve()
        path = (bucket_root / key).resolve()
        if bucket_root != path and bucket_root not in path.parents:
            raise StorageError(f"Key escapes bucket root: {key}")
        return path

    def list_objects(self, bucket: str, prefix: str) -> List[str]:
        bucket_root = self.root / bucket
        if not bucket_root.is_dir():
            return []

        keys = []
        for dirpath, _dirnames, filenames in os.walk(bucket_root):
            for name in filenames:
                full = Path(dirpath) / name
                key = full.relative_to(bucket_root).as_posix()
                if key.startswith(prefix):
                    keys.append(key)
        return sorted(keys)

    def download_object(self, bucket: str, key: str) -> bytes:
        path = self._path(bucket, key)
        if not path.is_file():
            raise NotFoundError(f"Object not found: {bucket}/{key}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {bucket}/{key}: {e}") from e

    def upload_object(self, bucket: str, key: str, data: bytes) -> None:
        path = self._path(bucket, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {bucket}/{key}: {e}") from e
        logger.debug(f"Wrote {len(data)} bytes to {bucket}/{key}")

    def delete_object(self, bucket: str, key: str) -> None:
        path = self._path(bucket, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {bucket}/{key}: {e}") from e

    def delete_objects(self, bucket: str, keys: Iterable[str]) -> None:
        for key in keys:
            self.delete_object(bucket, key)

    def signed_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        # Local files have no signing; the expiry is carried for parity only
        expires = int(time.time()) + ttl_seconds
        return f"{self.base_url}/{quote(bucket)}/{quote(key)}?expires={expires}"

    def object_exists(self, bucket: str, key: str) -> bool:
        return self._path(bucket, key).is_file()
