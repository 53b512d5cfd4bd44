"""
Object store backends for the gallery pipeline.

The backend is selected once per process from settings:
- GALLERY_STORAGE_BACKEND = "local" -> LocalObjectStore
- GALLERY_STORAGE_BACKEND = "s3" -> S3ObjectStore

Usage:
    from gallery.storage import get_object_store

    store = get_object_store()
    keys = store.list_objects(bucket, "processed/")
"""

import logging
from functools import lru_cache

from django.conf import settings

from gallery.storage.base import ObjectStore
from gallery.storage.local import LocalObjectStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    """Return the process-wide object store configured in settings."""
    backend = getattr(settings, "GALLERY_STORAGE_BACKEND", "local")

    if backend == "s3":
        from gallery.storage.s3 import S3ObjectStore

        logger.info("Using S3 object store")
        return S3ObjectStore(region=getattr(settings, "AWS_REGION", "us-east-1"))

    if backend == "local":
        logger.info("Using local filesystem object store")
        return LocalObjectStore(
            root=settings.GALLERY_LOCAL_STORAGE_PATH,
            base_url=getattr(settings, "GALLERY_LOCAL_ASSET_BASE_URL", ""),
        )

    raise ValueError(f"Unknown GALLERY_STORAGE_BACKEND: {backend}")


def reset_object_store() -> None:
    """Forget the memoised backend so the next call re-reads settings."""
    get_object_store.cache_clear()


def get_assets_bucket() -> str:
    """Bucket that holds stored/ and processed/ objects."""
    return settings.GALLERY_ASSETS_BUCKET


__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "get_object_store",
    "reset_object_store",
    "get_assets_bucket",
]
