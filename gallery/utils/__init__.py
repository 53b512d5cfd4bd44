"""
Utility functions for the gallery application.

- fingerprint.py: content fingerprints used as the Asset dedup key
- urls.py: URL resolution, filename extraction and image URL detection
"""

from .fingerprint import compute_fingerprint
from .urls import extract_filename, is_image_url, resolve_url, strip_query

__all__ = [
    "compute_fingerprint",
    "extract_filename",
    "is_image_url",
    "resolve_url",
    "strip_query",
]
