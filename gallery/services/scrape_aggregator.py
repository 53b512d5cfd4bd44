"""
Scrape Aggregator Service.

Runs the extraction engine over several page URLs and merges the results:
- images are de-duplicated on both remote URL and filename
- tags, categories and models are ordered unions
- the title is the first non-"Unknown" title in input order
- a failure on one URL is recorded and never aborts the batch
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from gallery.fetchers import AsyncHttpxFetcher
from gallery.monitoring import add_pipeline_breadcrumb
from gallery.services.image_extractor import (
    UNKNOWN_TITLE,
    ExtractedImage,
    ImageExtractor,
    PageExtraction,
)

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Merged extraction result over a batch of page URLs."""

    images: List[ExtractedImage] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    models: List[str] = field(default_factory=list)
    title: str = UNKNOWN_TITLE
    errors: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "images": [image.to_dict() for image in self.images],
            "tags": list(self.tags),
            "categories": list(self.categories),
            "models": list(self.models),
            "title": self.title,
            "errors": [{"url": url, "error": error} for url, error in self.errors],
        }


def _union_into(target: List[str], values: List[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def merge_extractions(pages: List[PageExtraction]) -> ScrapeResult:
    """Merge per-page extractions (already in input URL order)."""
    result = ScrapeResult()
    seen_urls = set()
    seen_filenames = set()

    for page in pages:
        for image in page.images:
            if image.url in seen_urls or image.filename in seen_filenames:
                continue
            seen_urls.add(image.url)
            seen_filenames.add(image.filename)
            result.images.append(image)

        _union_into(result.tags, page.tags)
        _union_into(result.categories, page.categories)
        _union_into(result.models, page.models)

        if result.title == UNKNOWN_TITLE and page.title and page.title != UNKNOWN_TITLE:
            result.title = page.title

    return result


class ScrapeAggregator:
    """
    Scrapes a batch of page URLs concurrently and merges the results.

    Usage:
        aggregator = ScrapeAggregator()
        result = await aggregator.scrape(urls, "all", "light")
    """

    def __init__(self, fetcher: Optional[AsyncHttpxFetcher] = None):
        self.fetcher = fetcher

    async def scrape(self, urls: List[str], size_preset: str, mode: str) -> ScrapeResult:
        """
        Scrape every URL and merge.

        Args:
            urls: Page URLs; duplicates are scraped once
            size_preset: small, medium, large or all
            mode: light or heavy

        Returns:
            ScrapeResult with per-URL errors as (url, message) pairs
        """
        unique_urls = list(dict.fromkeys(urls))
        owns_fetcher = self.fetcher is None
        fetcher = self.fetcher or AsyncHttpxFetcher()

        try:
            extractor = ImageExtractor(fetcher)
            outcomes = await asyncio.gather(
                *(extractor.extract(url, size_preset, mode) for url in unique_urls),
                return_exceptions=True,
            )
        finally:
            if owns_fetcher:
                await fetcher.close()

        pages = []
        errors = []
        for url, outcome in zip(unique_urls, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Failed to scrape {url}: {outcome}")
                add_pipeline_breadcrumb(
                    message="Scrape failed",
                    key=url,
                    level="warning",
                    extra_data={"error": str(outcome)},
                )
                errors.append((url, str(outcome) or outcome.__class__.__name__))
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            pages.append(outcome)

        result = merge_extractions(pages)
        result.errors = errors

        logger.info(
            f"Scraped {len(unique_urls)} pages: {len(result.images)} images, "
            f"{len(errors)} errors"
        )
        return result
