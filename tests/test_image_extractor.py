"""
Tests for the Image Extraction Service.

Covers the size filter, light-mode markup extraction, title and gallery
metadata parsing, and heavy-mode fetching and decoding.
"""

import pytest
from bs4 import BeautifulSoup

from gallery.exceptions import FetchError
from gallery.services.image_extractor import (
    ImageExtractor,
    collect_heavy_candidates,
    extract_light_images,
    matches_size_preset,
    parse_metadata,
    parse_title,
)

PAGE_URL = "https://gallery.example.com/set/1"


def soup_of(html):
    return BeautifulSoup(html, "html.parser")


class TestSizeFilter:
    """Tests for size preset boundaries."""

    def test_boundaries_are_inclusive(self):
        assert matches_size_preset(500, 500, "small")
        assert matches_size_preset(500, 500, "medium")
        assert matches_size_preset(1500, 1500, "medium")
        assert matches_size_preset(1500, 1500, "large")

    def test_one_dimension_out_of_bounds_excludes(self):
        assert not matches_size_preset(501, 100, "small")
        assert not matches_size_preset(800, 499, "medium")
        assert not matches_size_preset(1600, 1499, "large")
        assert not matches_size_preset(1501, 1000, "medium")

    def test_all_accepts_anything(self):
        assert matches_size_preset(1, 10000, "all")


class TestLightExtraction:
    """Tests for markup-only extraction."""

    def test_anchor_image_preferred_over_img_src(self):
        html = """
        <a href="/full/photo1.jpg" data-pswp-width="2000" data-pswp-height="1600">
        <img src="/thumbs/photo1.jpg" width="200" height="160"></a>
        """
        images = extract_light_images(soup_of(html), PAGE_URL, "all")

        assert len(images) == 1
        assert images[0].url == "https://gallery.example.com/full/photo1.jpg"
        assert images[0].width == 2000
        assert images[0].height == 1600
        assert images[0].filename == "photo1.jpg"
        assert images[0].source_url == PAGE_URL

    def test_anchor_to_page_is_ignored(self):
        html = '<a href="/details/1"><img src="/img/a.jpg"></a>'
        images = extract_light_images(soup_of(html), PAGE_URL, "all")

        assert [image.url for image in images] == ["https://gallery.example.com/img/a.jpg"]

    def test_override_dimensions_drive_size_filter(self):
        html = """
        <a href="/full/big.jpg" data-pswp-width="2000" data-pswp-height="2000"><img src="/t/big.jpg" width="100" height="100"></a>
        <a href="/full/small.jpg" data-pswp-width="300" data-pswp-height="300"><img src="/t/small.jpg" width="3000" height="3000"></a>
        """
        images = extract_light_images(soup_of(html), PAGE_URL, "large")

        assert [image.filename for image in images] == ["big.jpg"]

    def test_src_data_src_and_srcset_all_collected(self):
        html = """
        <img src="/a.jpg" data-src="/b.jpg" srcset="/c.jpg 1x, /d.jpg 2x">
        """
        images = extract_light_images(soup_of(html), PAGE_URL, "all")

        assert [image.filename for image in images] == ["a.jpg", "b.jpg", "c.jpg", "d.jpg"]

    def test_skips_data_urls_svg_and_duplicates(self):
        html = """
        <img src="data:image/png;base64,AAAA">
        <img src="/logo.svg?v=3">
        <img src="/a.jpg">
        <img src="https://gallery.example.com/a.jpg">
        """
        images = extract_light_images(soup_of(html), PAGE_URL, "all")

        assert [image.url for image in images] == ["https://gallery.example.com/a.jpg"]

    def test_images_without_both_dimensions_bypass_filter(self):
        html = """
        <img src="/no-dims.jpg">
        <img src="/width-only.jpg" width="5000">
        <img src="/too-big.jpg" width="5000" height="5000">
        """
        images = extract_light_images(soup_of(html), PAGE_URL, "small")

        assert [image.filename for image in images] == ["no-dims.jpg", "width-only.jpg"]
        assert images[1].width == 5000
        assert images[1].height is None

    def test_dimension_attributes_parse_leading_digits(self):
        html = '<img src="/a.jpg" width="640px" height="480">'
        images = extract_light_images(soup_of(html), PAGE_URL, "medium")

        assert images == []

    def test_picture_sources_added_without_dimensions(self):
        html = """
        <picture>
          <source srcset="/p/a.webp 1x, /p/b.webp 2x">
          <source srcset="/p/icon.svg">
          <img src="/p/a.jpg" width="100" height="100">
        </picture>
        """
        images = extract_light_images(soup_of(html), PAGE_URL, "all")

        assert [image.filename for image in images] == ["a.jpg", "a.webp", "b.webp"]
        assert images[1].width is None

    def test_protocol_relative_resolution(self):
        html = '<img src="//cdn.example.com/x.png">'
        images = extract_light_images(soup_of(html), PAGE_URL, "all")

        assert images[0].url == "https://cdn.example.com/x.png"


class TestPageMetadata:
    """Tests for title and gallery info parsing."""

    def test_gallery_heading_preferred(self):
        html = """
        <html><head><title>Site title</title></head>
        <body><div class="title-section filters gallery"><h1> Sunset Set </h1></div></body></html>
        """
        assert parse_title(soup_of(html)) == "Sunset Set"

    def test_falls_back_to_document_title(self):
        html = "<html><head><title> Page </title></head><body></body></html>"
        assert parse_title(soup_of(html)) == "Page"

    def test_unknown_when_no_title(self):
        assert parse_title(soup_of("<html><body><p>x</p></body></html>")) == "Unknown"

    def test_gallery_info_sections(self):
        html = """
        <div class="gallery-info__item">
          <div class="gallery-info__title">Tags</div>
          <div class="gallery-info__content"><a><span>beach</span></a><a><span>sunset</span></a></div>
        </div>
        <div class="gallery-info__item">
          <div class="gallery-info__title">Categories:</div>
          <div class="gallery-info__content"><a><span>Outdoor</span></a><a><span>beach</span></a></div>
        </div>
        <div class="gallery-info__item">
          <div class="gallery-info__title">Model</div>
          <div class="gallery-info__content"><a><span>Anna</span></a><a><span>Anna</span></a></div>
        </div>
        """
        metadata = parse_metadata(soup_of(html))

        assert metadata["tags"] == ["beach", "sunset"]
        assert metadata["categories"] == ["Outdoor", "beach"]
        assert metadata["models"] == ["Anna"]


class TestHeavyExtraction:
    """Tests for heavy mode, which fetches and decodes every candidate."""

    def test_candidates_prefer_anchor_and_skip_svg(self):
        html = """
        <a href="/full/a.jpg"><img src="/t/a.jpg" srcset="/t/a2.jpg 2x"></a>
        <img src="/b.jpg" data-src="/b-lazy.jpg">
        <img src="/logo.svg">
        <picture><source srcset="/c.webp"></picture>
        """
        candidates = collect_heavy_candidates(soup_of(html), PAGE_URL)

        assert candidates == [
            "https://gallery.example.com/full/a.jpg",
            "https://gallery.example.com/b.jpg",
            "https://gallery.example.com/b-lazy.jpg",
            "https://gallery.example.com/c.webp",
        ]

    @pytest.mark.asyncio
    async def test_true_dimensions_filter_and_failures_drop_single_image(
        self, async_fetcher, image_bytes
    ):
        html = """
        <html><head><title>Heavy</title></head><body>
        <img src="/big.png" width="10" height="10">
        <img src="/small.png">
        <img src="/missing.png">
        <img src="/garbage.png">
        </body></html>
        """
        big = image_bytes(1600, 1500)
        fetcher = async_fetcher(
            {
                PAGE_URL: html,
                "https://gallery.example.com/big.png": big,
                "https://gallery.example.com/small.png": image_bytes(100, 100),
                "https://gallery.example.com/garbage.png": b"not an image",
            }
        )

        async with fetcher:
            page = await ImageExtractor(fetcher, image_timeout=5).extract(PAGE_URL, "large", "heavy")

        assert page.title == "Heavy"
        assert len(page.images) == 1
        image = page.images[0]
        assert image.url == "https://gallery.example.com/big.png"
        assert (image.width, image.height) == (1600, 1500)
        assert image.format == "png"
        assert image.file_size == len(big)

    @pytest.mark.asyncio
    async def test_light_mode_fetches_only_the_page(self, async_fetcher):
        fetcher = async_fetcher({PAGE_URL: '<img src="/a.jpg" width="100" height="100">'})

        async with fetcher:
            page = await ImageExtractor(fetcher).extract(PAGE_URL, "small", "light")

        assert [image.filename for image in page.images] == ["a.jpg"]
        assert page.images[0].file_size is None
        assert page.images[0].format is None

    @pytest.mark.asyncio
    async def test_page_fetch_failure_raises(self, async_fetcher):
        fetcher = async_fetcher({PAGE_URL: (503, b"unavailable")})

        async with fetcher:
            with pytest.raises(FetchError) as exc_info:
                await ImageExtractor(fetcher).extract(PAGE_URL, "all", "light")

        assert exc_info.value.status_code == 503
