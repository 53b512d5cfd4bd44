"""
Label-Scoped Sync Engine.

Reconciles processed/<label>/ (plus any legacy root-level keys carrying the
same label) against ProcessedAsset rows. For each key:

1. Parse the key and check its label matches the one being synced
2. Resolve the source Asset by base filename
3. Resolve a ScrapedImage of that Asset to find the Collection
4. Find or create the ProcessingRun for (Collection, Label)
5. Migrate a legacy key inline when its partitioned target is free
6. Find or create the ProcessedAsset by key and update it

Unresolvable keys are skipped with an error; the scan always continues.
Labels are never created here.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.db import DatabaseError, transaction
from django.db.models import Q

from gallery.exceptions import GalleryError, NotFoundError
from gallery.models import Asset, Label, ProcessedAsset, ProcessingRun, ScrapedImage
from gallery.monitoring import capture_pipeline_error
from gallery.services.listing_cache import invalidate_listings
from gallery.services.processed_keys import (
    PROCESSED_PREFIX,
    LegacyKey,
    ProcessedKey,
    is_root_level,
    parse_processed_key,
)
from gallery.storage import ObjectStore, get_assets_bucket, get_object_store

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Counts and errors from one label sync."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    migrated: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "migrated": self.migrated,
            "errors": list(self.errors),
        }


class ProcessedSyncEngine:
    """
    Syncs one label's processed partition into the index.

    Usage:
        result = ProcessedSyncEngine().sync_label(label_id)
    """

    def __init__(
        self,
        object_store: Optional[ObjectStore] = None,
        bucket: Optional[str] = None,
    ):
        self.object_store = object_store or get_object_store()
        self.bucket = bucket or get_assets_bucket()

    def _candidate_keys(self, label: Label) -> List[str]:
        keys = self.object_store.list_objects(self.bucket, f"{PROCESSED_PREFIX}{label.name}/")
        logger.info(f"Found {len(keys)} processed objects for label '{label.name}'")

        legacy_keys = []
        for key in self.object_store.list_objects(self.bucket, PROCESSED_PREFIX):
            if not is_root_level(key):
                continue
            try:
                parsed = parse_processed_key(key)
            except GalleryError:
                continue
            if parsed.label == label.name:
                legacy_keys.append(key)

        if legacy_keys:
            logger.info(
                f"Found {len(legacy_keys)} legacy objects for label '{label.name}' "
                f"that need migration"
            )
        return keys + legacy_keys

    def sync_label(self, label_id) -> SyncResult:
        """
        Sync every processed object of one label.

        Raises:
            NotFoundError: the label does not exist
        """
        label = Label.objects.filter(id=label_id).first()
        if label is None:
            raise NotFoundError(f"Label not found: {label_id}")

        result = SyncResult()
        for key in self._candidate_keys(label):
            try:
                self._sync_key(key, label, result)
            except (GalleryError, DatabaseError) as e:
                result.failed += 1
                result.errors.append(f"{key}: {e}")
                logger.error(f"Failed to sync {key}: {e}")
                capture_pipeline_error(
                    e, operation="sync", key=key, extra_context={"label": label.name}
                )

        if result.processed or result.migrated:
            invalidate_listings()

        logger.info(
            f"Sync complete for label '{label.name}': {result.processed} processed, "
            f"{result.skipped} skipped, {result.failed} failed, {result.migrated} migrated"
        )
        return result

    def _skip(self, result: SyncResult, key: str, reason: str) -> None:
        result.skipped += 1
        result.errors.append(f"{key}: {reason}")
        logger.warning(f"Skipping {key}: {reason}")

    def _sync_key(self, key: str, label: Label, result: SyncResult) -> None:
        try:
            parsed: ProcessedKey = parse_processed_key(key)
        except GalleryError:
            self._skip(result, key, "malformed key")
            return

        if parsed.label != label.name:
            self._skip(
                result,
                key,
                f"label '{parsed.label}' in filename does not match '{label.name}'",
            )
            return

        asset = Asset.objects.filter(filename=parsed.base).order_by("created_at").first()
        if asset is None:
            self._skip(result, key, f"source asset '{parsed.base}' not found")
            return

        scraped_image = (
            ScrapedImage.objects.select_related("scrape__collection")
            .filter(asset=asset)
            .order_by("created_at")
            .first()
        )
        if scraped_image is None:
            self._skip(result, key, f"scraped image not found for '{parsed.base}'")
            return

        collection = scraped_image.scrape.collection
        processing_run, created = ProcessingRun.objects.get_or_create(
            collection=collection, label=label
        )
        if created:
            logger.info(
                f"Created processing run for collection {collection.id} and label '{label.name}'"
            )

        new_key = key
        if isinstance(parsed, LegacyKey):
            new_key = self._migrate_inline(key, parsed, result)

        filename = new_key.rsplit("/", 1)[-1]
        candidates = {
            row.key: row for row in ProcessedAsset.objects.filter(Q(key=new_key) | Q(key=key))
        }
        processed_asset = candidates.get(new_key) or candidates.get(key)
        with transaction.atomic():
            if processed_asset is None:
                ProcessedAsset.objects.create(
                    filename=filename,
                    bucket=self.bucket,
                    key=new_key,
                    processing_run=processing_run,
                    source_asset=asset,
                )
            else:
                processed_asset.filename = filename
                processed_asset.bucket = self.bucket
                processed_asset.key = new_key
                processed_asset.processing_run = processing_run
                processed_asset.source_asset = asset
                processed_asset.save()
        logger.info(f"Indexed processed asset {new_key}")

        result.processed += 1

    def _migrate_inline(self, key: str, parsed: LegacyKey, result: SyncResult) -> str:
        """
        Move a legacy object into its partition; return the key to index.

        On failure the legacy key is kept and the error recorded.
        """
        target = parsed.partitioned().key
        try:
            if not self.object_store.object_exists(self.bucket, target):
                data = self.object_store.download_object(self.bucket, key)
                self.object_store.upload_object(self.bucket, target, data)
                logger.info(f"Migrated {key} to {target}")
            self.object_store.delete_object(self.bucket, key)
        except GalleryError as e:
            result.errors.append(f"{key}: failed to migrate: {e}")
            logger.error(f"Failed to migrate {key}: {e}")
            return key

        result.migrated += 1
        return target
