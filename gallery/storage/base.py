"""
Object store capability set.

Every backend exposes the same bucket/key operations; the pipelines depend
only on this interface and never on a concrete provider.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List


class ObjectStore(ABC):
    """Abstract bucket/key object store client."""

    @abstractmethod
    def list_objects(self, bucket: str, prefix: str) -> List[str]:
        """
        List every key under ``prefix``.

        Directory-marker keys (ending in "/") are excluded and pagination is
        handled transparently.
        """

    @abstractmethod
    def download_object(self, bucket: str, key: str) -> bytes:
        """Return the object's bytes. Raises NotFoundError if absent."""

    @abstractmethod
    def upload_object(self, bucket: str, key: str, data: bytes) -> None:
        """Write ``data`` at ``key``, replacing any existing object."""

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete one object. Deleting a missing key is not an error."""

    @abstractmethod
    def delete_objects(self, bucket: str, keys: Iterable[str]) -> None:
        """Delete several objects in one call."""

    @abstractmethod
    def signed_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Return a time-limited read URL for handing to external callers."""

    def object_exists(self, bucket: str, key: str) -> bool:
        """True if an object is stored at exactly ``key``."""
        return key in self.list_objects(bucket, key)
