"""
Content fingerprinting for stored images.

The fingerprint is the lowercase hex sha-256 of the raw bytes. Two images
are the same Asset iff their fingerprints are equal.
"""

import hashlib


def compute_fingerprint(data: bytes) -> str:
    """Return the 64-character hex sha-256 digest of ``data``."""
    return hashlib.sha256(data).hexdigest()
