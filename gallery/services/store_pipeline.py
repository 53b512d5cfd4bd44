"""
Store/Commit Pipeline.

Turns the ScrapedImages of one Scrape into durable, content-addressed
Assets. Images are processed sequentially in persisted order so the
hash lookup and Asset creation never race within one run.

Per image:
1. Download the bytes (timeout-bounded)
2. Fingerprint them (sha-256)
3. Reuse the Asset with that hash, or upload under stored/<filename> and
   create the Asset row
4. Link the ScrapedImage to the Asset and stamp stored_at

A failed download or upload is recorded and the batch continues. The
Scrape is marked stored once the pass completes, even on partial failure;
callers judge completeness from the counts.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from gallery.exceptions import GalleryError, NotFoundError, ValidationError
from gallery.fetchers import HttpxDownloader
from gallery.models import Asset, Scrape, ScrapedImage
from gallery.monitoring import capture_pipeline_error
from gallery.services.listing_cache import invalidate_listings
from gallery.storage import ObjectStore, get_assets_bucket, get_object_store
from gallery.utils.fingerprint import compute_fingerprint

logger = logging.getLogger(__name__)

STORED_PREFIX = "stored/"


@dataclass
class StoreResult:
    """Outcome of one store pass over a Scrape."""

    stored: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"stored": self.stored, "failed": self.failed, "errors": list(self.errors)}


def stored_key(filename: str) -> str:
    return f"{STORED_PREFIX}{filename}"


class StorePipeline:
    """
    Stores every image of a Scrape as a deduplicated Asset.

    Usage:
        result = StorePipeline().store(scrape_id)
    """

    def __init__(
        self,
        object_store: Optional[ObjectStore] = None,
        downloader: Optional[HttpxDownloader] = None,
        bucket: Optional[str] = None,
    ):
        self.object_store = object_store or get_object_store()
        self.downloader = downloader
        self.bucket = bucket or get_assets_bucket()

    def store(self, scrape_id, collection_id=None) -> StoreResult:
        """
        Store all images of a Scrape.

        Args:
            scrape_id: Scrape to store
            collection_id: When given, the Scrape must belong to this collection

        Raises:
            NotFoundError: the Scrape does not exist
            ValidationError: the Scrape belongs to another collection
        """
        scrape = Scrape.objects.select_related("collection").filter(id=scrape_id).first()
        if scrape is None:
            raise NotFoundError(f"Scrape not found: {scrape_id}")
        if collection_id is not None and str(scrape.collection_id) != str(collection_id):
            raise ValidationError(
                f"Scrape {scrape_id} does not belong to collection {collection_id}"
            )

        owns_downloader = self.downloader is None
        downloader = self.downloader or HttpxDownloader()
        result = StoreResult()

        try:
            images = scrape.scraped_images.order_by("position", "created_at")
            for image in images:
                try:
                    self._store_image(image, scrape, downloader)
                except GalleryError as e:
                    result.failed += 1
                    result.errors.append(f"{image.url}: {e}")
                    logger.warning(f"Failed to store image {image.url}: {e}")
                    capture_pipeline_error(
                        e,
                        operation="store",
                        key=image.url,
                        extra_context={"scrape_id": str(scrape.id)},
                    )
                    continue
                result.stored += 1
        finally:
            if owns_downloader:
                downloader.close()

        scrape.stored = True
        scrape.save(update_fields=["stored"])
        invalidate_listings()

        logger.info(
            f"Stored scrape {scrape.id}: {result.stored} stored, {result.failed} failed"
        )
        return result

    def _store_image(self, image: ScrapedImage, scrape: Scrape, downloader) -> Asset:
        data = downloader.download(image.url)
        digest = compute_fingerprint(data)

        asset = Asset.objects.filter(hash=digest).first()
        if asset is None:
            asset = self._create_asset(image, digest, data)
        else:
            logger.debug(f"Reusing asset {asset.id} for {image.url}")

        asset.collections.add(scrape.collection)

        image.asset = asset
        image.stored_at = timezone.now()
        image.save(update_fields=["asset", "stored_at"])
        return asset

    def _create_asset(self, image: ScrapedImage, digest: str, data: bytes) -> Asset:
        """Upload new content and create its Asset row."""
        filename = image.filename
        key = stored_key(filename)

        # A different content already owns this filename
        if Asset.objects.filter(key=key).exclude(hash=digest).exists():
            filename = f"{digest[:12]}-{image.filename}"
            key = stored_key(filename)

        self.object_store.upload_object(self.bucket, key, data)

        try:
            with transaction.atomic():
                asset = Asset.objects.create(
                    hash=digest,
                    filename=filename,
                    url=image.source_url,
                    bucket=self.bucket,
                    key=key,
                )
        except IntegrityError:
            asset = Asset.objects.filter(hash=digest).first()
            if asset is None:
                raise
            return asset

        logger.info(f"Created asset {asset.id} at {key}")
        return asset
