"""
Orphan Reclaimer.

An Asset is orphaned when no Collection links it directly, no ScrapedImage
references it and no ProcessedAsset uses it as a source. Only orphans are
reclaimed.

Deletion order is bytes first, then the row. A storage failure is logged as
a consistency warning and the row is still removed; the resulting index or
store mismatch is surfaced later by reconcile_assets().
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from django.db.models import Count

from gallery.exceptions import GalleryError
from gallery.models import Asset
from gallery.monitoring import report_consistency_warning
from gallery.services.listing_cache import invalidate_listings
from gallery.services.store_pipeline import STORED_PREFIX
from gallery.storage import ObjectStore, get_object_store

logger = logging.getLogger(__name__)


@dataclass
class ReclaimResult:
    """Outcome of one reclaim pass."""

    checked: int = 0
    deleted: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"checked": self.checked, "deleted": self.deleted, "errors": list(self.errors)}


@dataclass
class ReconcileResult:
    """Assets whose backing object is missing, and Assets that are orphaned."""

    checked: int = 0
    missing_objects: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)
    deleted: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "checked": self.checked,
            "missing_objects": list(self.missing_objects),
            "orphaned": list(self.orphaned),
            "deleted": self.deleted,
            "errors": list(self.errors),
        }


def orphaned_assets(asset_ids: Optional[Iterable] = None):
    """Queryset of Assets with zero references of every kind."""
    queryset = Asset.objects.all()
    if asset_ids is not None:
        queryset = queryset.filter(id__in=list(asset_ids))
    return queryset.annotate(
        collection_refs=Count("collections", distinct=True),
        scraped_refs=Count("scraped_images", distinct=True),
        processed_refs=Count("processed_assets", distinct=True),
    ).filter(collection_refs=0, scraped_refs=0, processed_refs=0)


class OrphanReclaimer:
    """Deletes unreferenced Assets and their stored bytes."""

    def __init__(self, object_store: Optional[ObjectStore] = None):
        self.object_store = object_store or get_object_store()

    def reclaim(self, asset_ids: Iterable) -> ReclaimResult:
        """
        Reclaim the given Assets if they are orphaned.

        Referenced Assets are left untouched. Storage failures never block
        removal of the index row.
        """
        asset_ids = list(dict.fromkeys(asset_ids))
        result = ReclaimResult(checked=len(asset_ids))
        if not asset_ids:
            return result

        for asset in orphaned_assets(asset_ids):
            self._delete_asset(asset, result)

        if result.deleted:
            invalidate_listings()

        logger.info(
            f"Reclaim pass: {result.checked} checked, {result.deleted} deleted, "
            f"{len(result.errors)} storage errors"
        )
        return result

    def _delete_asset(self, asset: Asset, result: ReclaimResult) -> None:
        try:
            self.object_store.delete_object(asset.bucket, asset.key)
        except GalleryError as e:
            result.errors.append(f"{asset.key}: {e}")
            report_consistency_warning(
                f"Failed to delete stored bytes for asset {asset.id} at {asset.key}: {e}",
                operation="reclaim",
                key=asset.key,
            )

        asset.delete()
        result.deleted += 1
        logger.info(f"Reclaimed orphaned asset {asset.id} ({asset.key})")

    def reconcile(self, delete: bool = False) -> ReconcileResult:
        """
        Compare every Asset row against the object store.

        Reports Assets whose bytes are missing and Assets that are orphaned.
        With ``delete`` the orphans are reclaimed.
        """
        result = ReconcileResult()

        stored_keys: Dict[str, set] = {}
        for asset in Asset.objects.order_by("created_at").iterator():
            result.checked += 1
            if asset.bucket not in stored_keys:
                stored_keys[asset.bucket] = set(
                    self.object_store.list_objects(asset.bucket, STORED_PREFIX)
                )
            if asset.key not in stored_keys[asset.bucket]:
                result.missing_objects.append(asset.key)
                report_consistency_warning(
                    f"Asset {asset.id} has no backing object at {asset.key}",
                    operation="reconcile",
                    key=asset.key,
                )

        orphan_ids = []
        for asset in orphaned_assets():
            result.orphaned.append(asset.key)
            orphan_ids.append(asset.id)

        if delete and orphan_ids:
            reclaimed = self.reclaim(orphan_ids)
            result.deleted = reclaimed.deleted
            result.errors.extend(reclaimed.errors)

        logger.info(
            f"Reconcile: {result.checked} assets, {len(result.missing_objects)} missing objects, "
            f"{len(result.orphaned)} orphaned, {result.deleted} deleted"
        )
        return result


def get_orphan_reclaimer() -> OrphanReclaimer:
    return OrphanReclaimer()
