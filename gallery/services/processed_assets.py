"""
Processed Asset queries and updates.

Listings go through the listing cache; flag and score updates invalidate
it.
"""

import logging
from typing import Dict, List, Optional

from django.conf import settings

from gallery.exceptions import NotFoundError, ValidationError
from gallery.models import ProcessedAsset
from gallery.services.listing_cache import (
    get_listing_cache,
    invalidate_listings,
    resolve_ordering,
)
from gallery.storage import ObjectStore, get_object_store

logger = logging.getLogger(__name__)

PROCESSED_SORT_FIELDS = {"filename", "score", "hidden", "flagged", "created_at", "updated_at"}


def processed_asset_to_dict(processed_asset: ProcessedAsset, url: Optional[str] = None) -> Dict:
    run = processed_asset.processing_run
    return {
        "id": str(processed_asset.id),
        "filename": processed_asset.filename,
        "bucket": processed_asset.bucket,
        "key": processed_asset.key,
        "url": url,
        "hidden": processed_asset.hidden,
        "flagged": processed_asset.flagged,
        "score": processed_asset.score,
        "processing_run_id": str(run.id),
        "label": run.label.name,
        "collection": {"id": str(run.collection.id), "url": run.collection.url},
        "source_asset_id": str(processed_asset.source_asset_id),
    }


def list_processed_assets(
    processing_run_id=None,
    hidden: Optional[bool] = None,
    flagged: Optional[bool] = None,
    min_score: Optional[int] = None,
    label_ids: Optional[List] = None,
    sort: Optional[str] = None,
    object_store: Optional[ObjectStore] = None,
) -> List[Dict]:
    """
    List processed assets with signed read URLs.

    Ordered by processing run, then filename, unless ``sort`` names one of
    PROCESSED_SORT_FIELDS ("-score" for descending). Results are cached per
    filter and sort combination until the next state-changing operation.

    Raises:
        ValidationError: unsupported sort field
    """
    ordering = resolve_ordering(sort, PROCESSED_SORT_FIELDS, ["processing_run_id", "filename"])
    params = {
        "processing_run_id": str(processing_run_id) if processing_run_id else None,
        "hidden": hidden,
        "flagged": flagged,
        "min_score": min_score,
        "label_ids": sorted(str(label_id) for label_id in label_ids) if label_ids else None,
        "ordering": ordering,
    }
    store = object_store or get_object_store()
    ttl = getattr(settings, "GALLERY_SIGNED_URL_TTL", 3600)

    def compute() -> List[Dict]:
        queryset = ProcessedAsset.objects.select_related(
            "processing_run__label", "processing_run__collection"
        )
        if processing_run_id:
            queryset = queryset.filter(processing_run_id=processing_run_id)
        if hidden is not None:
            queryset = queryset.filter(hidden=hidden)
        if flagged is not None:
            queryset = queryset.filter(flagged=flagged)
        if min_score is not None:
            queryset = queryset.filter(score__gte=min_score)
        if label_ids:
            queryset = queryset.filter(processing_run__label_id__in=label_ids)

        return [
            processed_asset_to_dict(
                processed_asset,
                url=store.signed_get_url(processed_asset.bucket, processed_asset.key, ttl),
            )
            for processed_asset in queryset.order_by(*ordering)
        ]

    return get_listing_cache().get_or_compute("processed_assets", params, compute)


def set_processed_asset_flags(
    processed_asset_id,
    hidden: Optional[bool] = None,
    flagged: Optional[bool] = None,
    score: Optional[int] = None,
) -> Dict:
    """
    Update hidden/flagged/score on one processed asset.

    Raises:
        NotFoundError: unknown processed asset
        ValidationError: nothing to update
    """
    processed_asset = (
        ProcessedAsset.objects.select_related("processing_run__label", "processing_run__collection")
        .filter(id=processed_asset_id)
        .first()
    )
    if processed_asset is None:
        raise NotFoundError(f"Processed asset not found: {processed_asset_id}")

    update_fields = []
    if hidden is not None:
        processed_asset.hidden = hidden
        update_fields.append("hidden")
    if flagged is not None:
        processed_asset.flagged = flagged
        update_fields.append("flagged")
    if score is not None:
        processed_asset.score = score
        update_fields.append("score")
    if not update_fields:
        raise ValidationError("No fields to update")

    processed_asset.save(update_fields=update_fields)
    invalidate_listings()

    logger.info(f"Updated processed asset {processed_asset.id}: {', '.join(update_fields)}")
    return processed_asset_to_dict(processed_asset)
