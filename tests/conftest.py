"""
Pytest configuration and fixtures for the gallery test suite.
"""

from io import BytesIO

import httpx
import pytest
from PIL import Image


@pytest.fixture(scope="session")
def django_db_setup(django_db_blocker):
    """Configure the test database and run migrations."""
    from django.core.management import call_command

    with django_db_blocker.unblock():
        call_command("migrate", "--run-syncdb", verbosity=0)


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Clear the listing cache and the memoised object store between tests."""
    from django.core.cache import caches

    from gallery.storage import reset_object_store

    caches["listings"].clear()
    reset_object_store()
    yield
    caches["listings"].clear()
    reset_object_store()


def make_image_bytes(width: int, height: int, image_format: str = "PNG", color=(200, 30, 30)) -> bytes:
    """Encode a solid-colour image of the given size."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    """Factory fixture producing encoded image bytes."""
    return make_image_bytes


@pytest.fixture
def object_store(tmp_path):
    """Filesystem object store rooted in the test's tmp_path."""
    from gallery.storage.local import LocalObjectStore

    return LocalObjectStore(root=str(tmp_path / "objects"), base_url="http://testserver/objects")


@pytest.fixture
def bucket(settings):
    return settings.GALLERY_ASSETS_BUCKET


class FakeDownloader:
    """Downloader double returning canned bytes or raising per URL."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def download(self, url):
        from gallery.exceptions import FetchError

        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise FetchError(url, "HTTP 404", status_code=404)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


@pytest.fixture
def fake_downloader():
    """Factory for FakeDownloader instances."""
    return FakeDownloader


def mock_transport(routes):
    """
    httpx.MockTransport serving ``routes``.

    Values are (status, body) tuples, bytes (served as images) or str
    (served as HTML). Unknown URLs get a 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, content=b"not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, tuple):
            status, body = route
            return httpx.Response(status, content=body)
        if isinstance(route, str):
            return httpx.Response(
                200,
                content=route.encode("utf-8"),
                headers={"content-type": "text/html; charset=utf-8"},
            )
        return httpx.Response(200, content=route, headers={"content-type": "image/png"})

    return httpx.MockTransport(handler)


@pytest.fixture
def async_fetcher():
    """Factory building an AsyncHttpxFetcher over a mock transport."""
    from gallery.fetchers import AsyncHttpxFetcher

    def build(routes):
        return AsyncHttpxFetcher(timeout=5, transport=mock_transport(routes))

    return build


@pytest.fixture
def label(db):
    from gallery.models import Label

    return Label.objects.create(name="HR")


@pytest.fixture
def collection(db, label):
    from gallery.models import Collection

    collection = Collection.objects.create(url="https://gallery.example.com/set/1")
    collection.labels.add(label)
    return collection


@pytest.fixture
def make_scrape(db):
    """Factory creating a Scrape with ScrapedImages for (url, filename) pairs."""
    from gallery.models import Scrape, ScrapedImage

    def build(collection, images, stored=False):
        scrape = Scrape.objects.create(
            collection=collection,
            size_preset="all",
            scraping_mode="light",
            stored=stored,
        )
        for position, (url, filename) in enumerate(images):
            ScrapedImage.objects.create(
                scrape=scrape,
                position=position,
                url=url,
                filename=filename,
                source_url=collection.url,
            )
        return scrape

    return build


@pytest.fixture
def configured_store(settings, tmp_path, object_store):
    """Point the settings-selected backend at the same root as object_store."""
    from gallery.storage import reset_object_store

    settings.GALLERY_STORAGE_BACKEND = "local"
    settings.GALLERY_LOCAL_STORAGE_PATH = str(tmp_path / "objects")
    reset_object_store()
    return object_store
