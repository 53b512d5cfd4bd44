"""
Tests for URL helpers and content fingerprinting.
"""

import hashlib

from gallery.utils.fingerprint import compute_fingerprint
from gallery.utils.urls import extract_filename, is_image_url, resolve_url, strip_query


class TestResolveUrl:
    """Tests for resolving image references against the page URL."""

    def test_absolute_url_unchanged(self):
        assert resolve_url("https://cdn.example.com/a.jpg", "https://example.com/p") == (
            "https://cdn.example.com/a.jpg"
        )

    def test_protocol_relative_takes_page_scheme(self):
        assert resolve_url("//cdn.example.com/a.jpg", "http://example.com/p") == (
            "http://cdn.example.com/a.jpg"
        )

    def test_root_relative(self):
        assert resolve_url("/img/a.jpg", "https://example.com/gallery/1") == (
            "https://example.com/img/a.jpg"
        )

    def test_path_relative(self):
        assert resolve_url("a.jpg", "https://example.com/gallery/1/") == (
            "https://example.com/gallery/1/a.jpg"
        )

    def test_data_url_passes_through(self):
        data = "data:image/png;base64,AAAA"
        assert resolve_url(data, "https://example.com") == data


class TestFilenameAndImageDetection:
    """Tests for filename extraction and image URL detection."""

    def test_extract_filename_last_segment(self):
        assert extract_filename("https://example.com/a/b/photo.jpg?w=100") == "photo.jpg"

    def test_extract_filename_defaults_to_image(self):
        assert extract_filename("https://example.com/") == "image"
        assert extract_filename("https://example.com") == "image"

    def test_is_image_url_ignores_query(self):
        assert is_image_url("https://example.com/full.JPG?size=large")
        assert is_image_url("https://example.com/full.avif")

    def test_is_image_url_rejects_pages(self):
        assert not is_image_url("https://example.com/gallery/1")
        assert not is_image_url("https://example.com/page.html?x=.jpg")

    def test_strip_query(self):
        assert strip_query("https://example.com/a.svg?v=2#top") == "https://example.com/a.svg"


class TestFingerprint:
    """Tests for the content fingerprint."""

    def test_sha256_hex(self):
        data = b"some image bytes"
        assert compute_fingerprint(data) == hashlib.sha256(data).hexdigest()
        assert len(compute_fingerprint(data)) == 64

    def test_identical_content_identical_fingerprint(self):
        assert compute_fingerprint(b"abc") == compute_fingerprint(bytes(b"abc"))
        assert compute_fingerprint(b"abc") != compute_fingerprint(b"abd")
