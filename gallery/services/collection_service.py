"""
Collection Service.

Lifecycle of a Collection (a page URL to scrape) and its Scrape:

    unscraped -> scraped (Scrape exists, stored=False) -> stored (stored=True)

Re-scraping from any state deletes the existing Scrape first. Deleting a
Collection cascades to its Scrape and ScrapedImages and then reclaims any
Asset left without references.
"""

import logging
import uuid
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from asgiref.sync import async_to_sync
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from gallery.exceptions import ConflictError, NotFoundError, ValidationError
from gallery.models import (
    Collection,
    ImageSizePreset,
    Label,
    Scrape,
    ScrapedImage,
    ScrapingMode,
)
from gallery.services.listing_cache import (
    get_listing_cache,
    invalidate_listings,
    resolve_ordering,
)
from gallery.services.orphan_reclaimer import OrphanReclaimer
from gallery.services.scrape_aggregator import ScrapeAggregator, ScrapeResult
from gallery.storage import ObjectStore, get_object_store

logger = logging.getLogger(__name__)

COLLECTION_SORT_FIELDS = {"url", "created_at", "updated_at"}

DUPLICATE_IN_REQUEST = "Duplicate URL in request"
ALREADY_EXISTS = "Collection already exists with the same labels"


def _signed_url_ttl() -> int:
    return getattr(settings, "GALLERY_SIGNED_URL_TTL", 3600)


def collection_to_dict(collection: Collection) -> Dict:
    return {
        "id": str(collection.id),
        "url": collection.url,
        "labels": [{"id": str(label.id), "name": label.name} for label in collection.labels.all()],
        "state": str(collection.state),
        "created_at": collection.created_at.isoformat(),
        "updated_at": collection.updated_at.isoformat(),
    }


def _get_collection(collection_id) -> Collection:
    collection = Collection.objects.filter(id=collection_id).first()
    if collection is None:
        raise NotFoundError(f"Collection not found: {collection_id}")
    return collection


def _validate_labels(label_ids: Optional[Iterable]) -> List[Label]:
    """Resolve label ids; unknown or malformed ids raise ValidationError."""
    if not label_ids:
        return []

    requested = []
    for label_id in label_ids:
        try:
            requested.append(uuid.UUID(str(label_id)))
        except ValueError:
            raise ValidationError(f"Invalid label id: {label_id}") from None

    labels = list(Label.objects.filter(id__in=requested))
    found = {label.id for label in labels}
    missing = [str(label_id) for label_id in requested if label_id not in found]
    if missing:
        raise ValidationError(f"The following label IDs were not found: {', '.join(missing)}")
    return labels


def get_collection(collection_id) -> Dict:
    return collection_to_dict(_get_collection(collection_id))


def get_collection_state(collection_id) -> str:
    """unscraped, scraped or stored."""
    return str(_get_collection(collection_id).state)


def create_collections(urls: List[str], label_ids: Optional[List] = None) -> Dict:
    """
    Create one Collection per URL.

    URLs repeated within the request are reported as failures. An existing
    URL gets any new labels merged in; with no new labels it is reported
    as a failure.

    Returns:
        {"created": [collection dicts], "failed": {url: reason}}

    Raises:
        ValidationError: unknown label ids
    """
    labels = _validate_labels(label_ids)

    seen = set()
    duplicates = set()
    for url in urls:
        if url in seen:
            duplicates.add(url)
        seen.add(url)
    unique_urls = list(dict.fromkeys(urls))

    existing = {
        collection.url: collection
        for collection in Collection.objects.filter(url__in=unique_urls).prefetch_related("labels")
    }

    created = []
    failed: Dict[str, str] = {}

    for url in unique_urls:
        if url in duplicates:
            failed[url] = DUPLICATE_IN_REQUEST
            continue

        collection = existing.get(url)
        if collection is not None:
            existing_ids = {label.id for label in collection.labels.all()}
            new_labels = [label for label in labels if label.id not in existing_ids]
            if not new_labels:
                failed[url] = ALREADY_EXISTS
                continue
            collection.labels.add(*new_labels)
            collection.save(update_fields=["updated_at"])
            created.append(collection_to_dict(collection))
            logger.info(f"Updated collection {collection.id} with {len(new_labels)} new label(s)")
            continue

        with transaction.atomic():
            collection = Collection.objects.create(url=url)
            if labels:
                collection.labels.set(labels)
        created.append(collection_to_dict(collection))
        logger.info(f"Created collection {collection.id} for {url}")

    if created:
        invalidate_listings()
    return {"created": created, "failed": failed}


def update_collection(collection_id, url: Optional[str] = None, label_ids: Optional[List] = None) -> Dict:
    """
    Change a collection's URL and/or replace its labels.

    Raises:
        NotFoundError: unknown collection
        ConflictError: another collection already has ``url``
        ValidationError: unknown label ids
    """
    collection = _get_collection(collection_id)

    if url:
        if Collection.objects.filter(url=url).exclude(id=collection.id).exists():
            raise ConflictError(f"Collection with URL '{url}' already exists")
        collection.url = url

    with transaction.atomic():
        collection.save()
        if label_ids is not None:
            collection.labels.set(_validate_labels(label_ids))

    invalidate_listings()
    return collection_to_dict(collection)


def delete_collection(collection_id, object_store: Optional[ObjectStore] = None) -> None:
    """Delete a collection and reclaim any Asset it leaves unreferenced."""
    collection = _get_collection(collection_id)

    asset_ids = list(
        ScrapedImage.objects.filter(scrape__collection=collection, asset__isnull=False)
        .values_list("asset_id", flat=True)
        .distinct()
    )

    collection.delete()
    logger.info(f"Deleted collection {collection_id}")

    if asset_ids:
        OrphanReclaimer(object_store).reclaim(asset_ids)
    invalidate_listings()


def scrape_collection(
    collection_id,
    size_preset: str,
    mode: str,
    aggregator: Optional[ScrapeAggregator] = None,
) -> ScrapeResult:
    """
    Scrape a collection's URL, replacing any previous Scrape.

    Raises:
        NotFoundError: unknown collection
        ValidationError: unknown size preset or scraping mode
    """
    if size_preset not in ImageSizePreset.values:
        raise ValidationError(f"Unknown size preset: {size_preset}")
    if mode not in ScrapingMode.values:
        raise ValidationError(f"Unknown scraping mode: {mode}")

    collection = _get_collection(collection_id)

    deleted, _ = Scrape.objects.filter(collection=collection).delete()
    if deleted:
        logger.info(f"Deleted previous scrape of collection {collection.id}")

    aggregator = aggregator or ScrapeAggregator()
    result = async_to_sync(aggregator.scrape)([collection.url], size_preset, mode)

    with transaction.atomic():
        scrape = Scrape.objects.create(
            collection=collection,
            size_preset=size_preset,
            scraping_mode=mode,
            errors=[{"url": url, "error": error} for url, error in result.errors],
            tags=result.tags,
            categories=result.categories,
            model_names=result.models,
            title=result.title or "Unknown",
        )
        ScrapedImage.objects.bulk_create(
            [
                ScrapedImage(
                    scrape=scrape,
                    position=position,
                    filename=image.filename,
                    url=image.url,
                    source_url=image.source_url,
                    width=image.width,
                    height=image.height,
                    file_size=image.file_size,
                    format=image.format or "",
                )
                for position, image in enumerate(result.images)
            ]
        )

    invalidate_listings()
    logger.info(
        f"Scraped collection {collection.id}: {len(result.images)} images, "
        f"{len(result.errors)} errors"
    )
    return result


def get_scrape_result(
    collection_id, scrape_id, object_store: Optional[ObjectStore] = None
) -> Dict:
    """
    Read a persisted Scrape back.

    Stored images are returned with a signed URL to their Asset instead of
    the remote URL.

    Raises:
        NotFoundError: unknown scrape
        ValidationError: the scrape belongs to another collection
    """
    scrape = Scrape.objects.filter(id=scrape_id).first()
    if scrape is None:
        raise NotFoundError(f"Scrape not found: {scrape_id}")
    if str(scrape.collection_id) != str(collection_id):
        raise ValidationError(
            f"Scrape {scrape_id} does not belong to collection {collection_id}"
        )

    store = object_store or get_object_store()
    ttl = _signed_url_ttl()

    images = []
    for image in scrape.scraped_images.select_related("asset").order_by("position", "created_at"):
        url = image.url
        if image.asset is not None:
            url = store.signed_get_url(image.asset.bucket, image.asset.key, ttl)
        images.append(
            {
                "id": str(image.id),
                "filename": image.filename,
                "url": url,
                "source_url": image.source_url,
                "width": image.width,
                "height": image.height,
                "file_size": image.file_size,
                "format": image.format or None,
            }
        )

    return {
        "images": images,
        "scraping_mode": scrape.scraping_mode,
        "size_preset": scrape.size_preset,
        "tags": scrape.tags,
        "categories": scrape.categories,
        "models": scrape.model_names,
        "title": scrape.title,
        "errors": scrape.error_entries(),
        "stored": scrape.stored,
    }


def get_collection_download_urls(
    collection_id, object_store: Optional[ObjectStore] = None
) -> List[Dict]:
    """
    Signed download URLs for every stored image of a stored collection.

    Raises:
        NotFoundError: unknown collection, or it has not been scraped
        ValidationError: the scrape has not been stored yet
    """
    collection = _get_collection(collection_id)
    scrape = Scrape.objects.filter(collection=collection).first()
    if scrape is None:
        raise NotFoundError(f"Collection {collection_id} has not been scraped yet")
    if not scrape.stored:
        raise ValidationError(f"Collection {collection_id} has not been stored yet")

    store = object_store or get_object_store()
    ttl = _signed_url_ttl()

    downloads = []
    images = (
        scrape.scraped_images.select_related("asset")
        .filter(stored_at__isnull=False, asset__isnull=False)
        .order_by("position", "created_at")
    )
    for image in images:
        asset = image.asset
        downloads.append(
            {
                "asset_id": str(asset.id),
                "filename": asset.filename,
                "url": store.signed_get_url(asset.bucket, asset.key, ttl),
                "expires_at": (timezone.now() + timedelta(seconds=ttl)).isoformat(),
            }
        )
    return downloads


def list_collections(
    scraped: Optional[bool] = None,
    stored: Optional[bool] = None,
    label_ids: Optional[List] = None,
    sort: Optional[str] = None,
) -> List[Dict]:
    """
    List collections through the listing cache, newest first by default.

    Args:
        scraped: True for collections with a Scrape, False for those without
        stored: True or False to require a Scrape with that stored flag
        label_ids: Keep collections carrying any of these labels
        sort: "url", "created_at" or "updated_at", prefixed with "-" for descending

    Raises:
        ValidationError: unsupported sort field
    """
    ordering = resolve_ordering(sort, COLLECTION_SORT_FIELDS, ["-created_at"])
    params = {
        "scraped": scraped,
        "stored": stored,
        "label_ids": sorted(str(label_id) for label_id in label_ids) if label_ids else None,
        "ordering": ordering,
    }

    def compute() -> List[Dict]:
        queryset = Collection.objects.prefetch_related("labels")
        if scraped is not None:
            queryset = queryset.filter(scrape__isnull=not scraped)
        if stored is not None:
            queryset = queryset.filter(scrape__isnull=False, scrape__stored=stored)
        if label_ids:
            queryset = queryset.filter(labels__id__in=label_ids).distinct()
        return [collection_to_dict(collection) for collection in queryset.order_by(*ordering)]

    return get_listing_cache().get_or_compute("collections", params, compute)
