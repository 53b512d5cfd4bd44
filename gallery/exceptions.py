"""
Error taxonomy for the gallery ingestion pipeline.

Per-item failures (one image, one key, one URL) are caught by the batch
operations and folded into their result's error list. Structural failures
(database unreachable, bucket cannot be listed) propagate to the caller.
"""

from typing import Optional


class GalleryError(Exception):
    """Base class for all gallery pipeline errors."""


class FetchError(GalleryError):
    """Network failure, timeout or HTTP error status on an external fetch."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ParseError(GalleryError):
    """Malformed HTML document or object key that cannot be parsed."""


class NotFoundError(GalleryError):
    """Referenced entity is absent from the index or the object store."""


class ConflictError(GalleryError):
    """Uniqueness violation, e.g. a duplicate page URL or label name."""


class ValidationError(GalleryError):
    """Invalid input for an operation (unknown ids, mismatched ownership)."""


class StorageError(GalleryError):
    """Object store read or write failure other than a missing key."""


class ConsistencyWarning(UserWarning):
    """
    Non-fatal mismatch between the object store and the relational index.

    Logged, never raised: an object with no index row, or an index row
    with no backing object.
    """
