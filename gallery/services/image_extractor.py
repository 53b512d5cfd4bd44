"""
Image Extraction Service.

Extracts candidate image references and gallery metadata from one page.

Two fidelity modes:
- light: markup only. Dimensions come from width/height attributes or the
  anchor's data-pswp-width/data-pswp-height overrides; nothing but the page
  itself is fetched.
- heavy: the same references, then every candidate is fetched and decoded
  with Pillow so the size filter runs against true dimensions.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup
from PIL import Image, UnidentifiedImageError

from django.conf import settings

from gallery.exceptions import FetchError, ParseError
from gallery.fetchers import AsyncHttpxFetcher
from gallery.models import ImageSizePreset, ScrapingMode
from gallery.utils.urls import extract_filename, is_image_url, resolve_url, strip_query

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown"

SMALL_MAX = 500
MEDIUM_MIN = 500
MEDIUM_MAX = 1500
LARGE_MIN = 1500

GALLERY_TITLE_SELECTOR = "div.title-section.filters.gallery h1"
GALLERY_INFO_ITEM_SELECTOR = ".gallery-info__item"
GALLERY_INFO_TITLE_SELECTOR = ".gallery-info__title"
GALLERY_INFO_VALUE_SELECTOR = ".gallery-info__content a span"

_LEADING_INT = re.compile(r"^\s*(\d+)")


@dataclass
class ExtractedImage:
    """One candidate image found on a page."""

    url: str
    source_url: str
    filename: str
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    format: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "url": self.url,
            "source_url": self.source_url,
            "filename": self.filename,
            "width": self.width,
            "height": self.height,
            "file_size": self.file_size,
            "format": self.format,
        }


@dataclass
class PageExtraction:
    """Images and metadata extracted from a single page."""

    url: str
    images: List[ExtractedImage] = field(default_factory=list)
    title: str = UNKNOWN_TITLE
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    models: List[str] = field(default_factory=list)


def matches_size_preset(width: int, height: int, preset: str) -> bool:
    """
    Check (width, height) against a size preset.

    Bounds are inclusive and both dimensions must satisfy them.
    """
    if preset == ImageSizePreset.SMALL:
        return width <= SMALL_MAX and height <= SMALL_MAX
    if preset == ImageSizePreset.MEDIUM:
        return MEDIUM_MIN <= width <= MEDIUM_MAX and MEDIUM_MIN <= height <= MEDIUM_MAX
    if preset == ImageSizePreset.LARGE:
        return width >= LARGE_MIN and height >= LARGE_MIN
    return True


def _parse_dimension(value: Optional[str]) -> Optional[int]:
    """Leading integer of an HTML dimension attribute ("640px" -> 640)."""
    if not value:
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


def _split_srcset(srcset: str) -> List[str]:
    urls = []
    for candidate in srcset.split(","):
        parts = candidate.strip().split(" ")
        if parts and parts[0]:
            urls.append(parts[0])
    return urls


def _is_svg(url: str) -> bool:
    return strip_query(url).lower().endswith(".svg")


def parse_html(html: str) -> BeautifulSoup:
    """Parse a page, mapping parser rejection to ParseError."""
    try:
        return BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as e:
        raise ParseError(f"Malformed HTML: {e}") from e


def parse_title(soup: BeautifulSoup) -> str:
    """Gallery heading, else the document <title>, else "Unknown"."""
    heading = soup.select_one(GALLERY_TITLE_SELECTOR)
    if heading:
        text = heading.get_text().strip()
        if text:
            return text

    if soup.title:
        text = soup.title.get_text().strip()
        if text:
            return text

    return UNKNOWN_TITLE


def parse_gallery_info(soup: BeautifulSoup, keyword: str) -> List[str]:
    """Values listed under every gallery info block whose title mentions ``keyword``."""
    values: List[str] = []
    keyword = keyword.lower()

    for item in soup.select(GALLERY_INFO_ITEM_SELECTOR):
        title = "".join(
            node.get_text() for node in item.select(GALLERY_INFO_TITLE_SELECTOR)
        ).strip().lower()
        if keyword not in title:
            continue
        for span in item.select(GALLERY_INFO_VALUE_SELECTOR):
            text = span.get_text().strip()
            if text and text not in values:
                values.append(text)

    return values


def parse_metadata(soup: BeautifulSoup) -> Dict[str, List[str]]:
    return {
        "tags": parse_gallery_info(soup, "tag"),
        "categories": parse_gallery_info(soup, "categor"),
        "models": parse_gallery_info(soup, "model"),
    }


def _anchor_image(img, page_url: str) -> Tuple[Optional[str], Optional[int], Optional[int]]:
    """
    Image URL (and override dimensions) from the <a> directly wrapping ``img``.

    Returns (None, None, None) when the parent is not an anchor or its href
    does not point at an image.
    """
    parent = img.parent
    if parent is None or parent.name != "a":
        return None, None, None

    href = parent.get("href")
    if not href:
        return None, None, None

    resolved = resolve_url(href, page_url)
    if not is_image_url(resolved):
        return None, None, None

    return (
        resolved,
        _parse_dimension(parent.get("data-pswp-width")),
        _parse_dimension(parent.get("data-pswp-height")),
    )


def extract_light_images(
    soup: BeautifulSoup, page_url: str, size_preset: str
) -> List[ExtractedImage]:
    """
    Extract candidates from markup alone.

    Images with both dimensions declared are filtered by ``size_preset``;
    images missing either dimension are kept unconditionally.
    """
    found: Dict[str, ExtractedImage] = {}

    for img in soup.find_all("img"):
        anchor_url, pswp_width, pswp_height = _anchor_image(img, page_url)
        width = pswp_width or _parse_dimension(img.get("width"))
        height = pswp_height or _parse_dimension(img.get("height"))

        sources = []
        if img.get("src"):
            sources.append(img["src"])
        if img.get("data-src"):
            sources.append(img["data-src"])
        if img.get("srcset"):
            sources.extend(_split_srcset(img["srcset"]))

        for source in sources:
            resolved = resolve_url(anchor_url or source, page_url)
            if resolved.startswith("data:") or resolved in found or _is_svg(resolved):
                continue
            if width and height and not matches_size_preset(width, height, size_preset):
                continue
            found[resolved] = ExtractedImage(
                url=resolved,
                source_url=page_url,
                filename=extract_filename(resolved),
                width=width,
                height=height,
            )

    for source_tag in soup.select("picture source"):
        srcset = source_tag.get("srcset")
        if not srcset:
            continue
        for source in _split_srcset(srcset):
            resolved = resolve_url(source, page_url)
            if resolved.startswith("data:") or resolved in found or _is_svg(resolved):
                continue
            found[resolved] = ExtractedImage(
                url=resolved,
                source_url=page_url,
                filename=extract_filename(resolved),
            )

    return list(found.values())


def collect_heavy_candidates(soup: BeautifulSoup, page_url: str) -> List[str]:
    """Ordered, de-duplicated candidate URLs for heavy-mode fetching."""
    candidates: Dict[str, None] = {}

    def add(url: str) -> None:
        resolved = resolve_url(url, page_url)
        if resolved.startswith("data:") or _is_svg(resolved):
            return
        candidates.setdefault(resolved, None)

    for img in soup.find_all("img"):
        anchor_url, _, _ = _anchor_image(img, page_url)
        if anchor_url:
            add(anchor_url)
            continue
        if img.get("src"):
            add(img["src"])
        if img.get("data-src"):
            add(img["data-src"])
        if img.get("srcset"):
            for source in _split_srcset(img["srcset"]):
                add(source)

    for source_tag in soup.select("picture source"):
        srcset = source_tag.get("srcset")
        if srcset:
            for source in _split_srcset(srcset):
                add(source)

    return list(candidates)


def decode_image(data: bytes) -> Tuple[int, int, Optional[str]]:
    """Return (width, height, format) of encoded image bytes."""
    with Image.open(BytesIO(data)) as image:
        width, height = image.size
        image_format = image.format.lower() if image.format else None
    return width, height, image_format


class ImageExtractor:
    """
    Extracts images and metadata from a page URL.

    Usage:
        async with AsyncHttpxFetcher() as fetcher:
            extractor = ImageExtractor(fetcher)
            page = await extractor.extract(url, "large", "heavy")
    """

    def __init__(
        self,
        fetcher: AsyncHttpxFetcher,
        image_timeout: Optional[float] = None,
    ):
        self.fetcher = fetcher
        self.image_timeout = image_timeout or getattr(settings, "GALLERY_IMAGE_TIMEOUT", 15)

    async def extract(self, url: str, size_preset: str, mode: str) -> PageExtraction:
        """
        Extract candidate images and metadata from one page.

        Raises:
            FetchError: the page itself could not be fetched
            ParseError: the page markup was rejected by the parser
        """
        response = await self.fetcher.fetch(url)
        soup = parse_html(response.text)

        metadata = parse_metadata(soup)
        page = PageExtraction(
            url=url,
            title=parse_title(soup),
            tags=metadata["tags"],
            categories=metadata["categories"],
            models=metadata["models"],
        )

        if mode == ScrapingMode.HEAVY:
            page.images = await self._extract_heavy(soup, url, size_preset)
        else:
            page.images = extract_light_images(soup, url, size_preset)

        logger.info(f"Extracted {len(page.images)} images from {url} ({mode}/{size_preset})")
        return page

    async def _extract_heavy(
        self, soup: BeautifulSoup, page_url: str, size_preset: str
    ) -> List[ExtractedImage]:
        candidates = collect_heavy_candidates(soup, page_url)
        results = await asyncio.gather(
            *(self._inspect_image(url, page_url, size_preset) for url in candidates),
            return_exceptions=True,
        )

        images = []
        for url, result in zip(candidates, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to process image {url}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                images.append(result)
        return images

    async def _inspect_image(
        self, image_url: str, page_url: str, size_preset: str
    ) -> Optional[ExtractedImage]:
        """Fetch and decode one candidate; None if it fails the size filter."""
        try:
            response = await self.fetcher.fetch(image_url, timeout=self.image_timeout)
            width, height, image_format = decode_image(response.content)
        except FetchError as e:
            logger.warning(f"Failed to fetch image {image_url}: {e}")
            return None
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning(f"Failed to decode image {image_url}: {e}")
            return None

        if not matches_size_preset(width, height, size_preset):
            return None

        return ExtractedImage(
            url=image_url,
            source_url=page_url,
            filename=extract_filename(image_url),
            width=width,
            height=height,
            file_size=len(response.content),
            format=image_format,
        )
