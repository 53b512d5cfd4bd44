"""
URL helpers shared by the extraction engine and the store pipeline.
"""

from urllib.parse import urljoin, urlparse

IMAGE_EXTENSIONS = (
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".bmp",
    ".svg",
    ".ico",
    ".avif",
)

DEFAULT_FILENAME = "image"


def resolve_url(url: str, base_url: str) -> str:
    """
    Resolve a possibly-relative URL against the page URL.

    data: URLs and absolute URLs pass through untouched; protocol-relative
    URLs (//host/path) take the scheme of the base URL.
    """
    url = url.strip()
    if url.startswith("data:"):
        return url
    if url.startswith("http://") or url.startswith("https://"):
        return url
    if url.startswith("//"):
        scheme = urlparse(base_url).scheme or "https"
        return f"{scheme}:{url}"
    return urljoin(base_url, url)


def strip_query(url: str) -> str:
    """Drop the query string and fragment from a URL."""
    return url.split("#", 1)[0].split("?", 1)[0]


def extract_filename(url: str) -> str:
    """Last non-empty path segment of the URL, or "image" if there is none."""
    path = urlparse(url).path
    segment = path.rstrip("/").rsplit("/", 1)[-1] if path else ""
    return segment or DEFAULT_FILENAME


def is_image_url(url: str) -> bool:
    """True if the URL path ends in a known image extension."""
    path = urlparse(url).path.lower()
    return path.endswith(IMAGE_EXTENSIONS)
