"""
HTTP fetching for the gallery pipeline.

- AsyncHttpxFetcher: pages and heavy-mode image fetches
- HttpxDownloader: image bytes for the store pipeline
"""

from .httpx_fetcher import (
    DEFAULT_USER_AGENT,
    AsyncHttpxFetcher,
    FetchResponse,
    HttpxDownloader,
)

__all__ = [
    "DEFAULT_USER_AGENT",
    "AsyncHttpxFetcher",
    "FetchResponse",
    "HttpxDownloader",
]
