"""
Timeout-bounded HTTP fetchers built on httpx.

AsyncHttpxFetcher serves the extraction engine (pages and heavy-mode image
fetches). HttpxDownloader is the synchronous counterpart used by the store
pipeline, which runs sequentially inside one task.

Both raise FetchError on timeout, transport failure or an HTTP status of
400 and above.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from django.conf import settings

from gallery.exceptions import FetchError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
}


@dataclass
class FetchResponse:
    """Response from a fetch operation."""

    url: str
    status_code: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Body decoded as text, replacing undecodable bytes."""
        charset = "utf-8"
        content_type = self.headers.get("content-type", "")
        if "charset=" in content_type:
            charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or charset
        try:
            return self.content.decode(charset, errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")


def _check_status(url: str, response: httpx.Response) -> None:
    if response.status_code >= 400:
        raise FetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)


class AsyncHttpxFetcher:
    """
    Async fetcher for pages and image bytes.

    Usage:
        async with AsyncHttpxFetcher() as fetcher:
            response = await fetcher.fetch(url)
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize fetcher.

        Args:
            timeout: Default request timeout in seconds (default from settings)
            user_agent: Custom User-Agent string
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        self.timeout = timeout or getattr(settings, "GALLERY_REQUEST_TIMEOUT", 30)
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self._init_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _init_http_client(self):
        """Initialize HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={**DEFAULT_HEADERS, "User-Agent": self.user_agent},
                follow_redirects=True,
                transport=self.transport,
            )

    async def close(self):
        """Close HTTP client connection."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch(self, url: str, timeout: Optional[float] = None) -> FetchResponse:
        """
        GET a URL.

        Args:
            url: URL to fetch
            timeout: Per-request timeout override in seconds

        Returns:
            FetchResponse with body bytes and headers

        Raises:
            FetchError: on timeout, transport failure or HTTP status >= 400
        """
        if self._http_client is None:
            await self._init_http_client()

        request_timeout = httpx.Timeout(timeout) if timeout else httpx.USE_CLIENT_DEFAULT
        try:
            response = await self._http_client.get(url, timeout=request_timeout)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {url}: {e}")
            raise FetchError(url, f"Timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching {url}: {e}")
            raise FetchError(url, str(e) or e.__class__.__name__) from e

        _check_status(url, response)
        return FetchResponse(
            url=str(response.url),
            status_code=response.status_code,
            content=response.content,
            headers={k.lower(): v for k, v in response.headers.items()},
        )


class HttpxDownloader:
    """Synchronous image downloader for the store pipeline."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.timeout = timeout or getattr(settings, "GALLERY_STORE_TIMEOUT", 30)
        self.transport = transport
        self._http_client: Optional[httpx.Client] = None

    def __enter__(self):
        self._init_http_client()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _init_http_client(self):
        if self._http_client is None:
            self._http_client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                headers={**DEFAULT_HEADERS, "User-Agent": DEFAULT_USER_AGENT},
                follow_redirects=True,
                transport=self.transport,
            )

    def close(self):
        if self._http_client:
            self._http_client.close()
            self._http_client = None

    def download(self, url: str) -> bytes:
        """Return the body bytes of ``url``. Raises FetchError on failure."""
        if self._http_client is None:
            self._init_http_client()

        try:
            response = self._http_client.get(url)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout downloading {url}: {e}")
            raise FetchError(url, f"Timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Error downloading {url}: {e}")
            raise FetchError(url, str(e) or e.__class__.__name__) from e

        _check_status(url, response)
        return response.content
