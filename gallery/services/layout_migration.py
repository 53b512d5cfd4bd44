"""
Layout Migration Engine.

Moves processed objects from the legacy flat layout to the label
partitioned layout and keeps ProcessedAsset.key in step:

    processed/<base>---processed@<label>_<n>.<ext>
        -> processed/<label>/<base>---processed@<label>_<n>.<ext>

Per key the order is: existence check on the target, download, upload,
index update, delete legacy object. A crash between upload and delete
leaves a duplicate, never a gap, and the next run treats the key as done.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from gallery.exceptions import GalleryError
from gallery.models import Label, ProcessedAsset
from gallery.monitoring import capture_pipeline_error, report_consistency_warning
from gallery.services.listing_cache import invalidate_listings
from gallery.services.processed_keys import (
    PROCESSED_PREFIX,
    LegacyKey,
    is_root_level,
    parse_processed_key,
)
from gallery.storage import ObjectStore, get_assets_bucket, get_object_store

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    """Counts and errors from one migration run."""

    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    dry_run: bool = False
    actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "migrated": self.migrated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
            "dry_run": self.dry_run,
            "actions": list(self.actions),
        }


class LayoutMigrationEngine:
    """
    Migrates legacy processed keys into label partitions.

    Usage:
        result = LayoutMigrationEngine().migrate(dry_run=True)
    """

    def __init__(
        self,
        object_store: Optional[ObjectStore] = None,
        bucket: Optional[str] = None,
    ):
        self.object_store = object_store or get_object_store()
        self.bucket = bucket or get_assets_bucket()

    def migrate(self, dry_run: bool = False) -> MigrationResult:
        """
        Migrate every legacy key under processed/.

        Args:
            dry_run: Only parse, resolve and check targets; report the
                intended moves without touching storage or the index

        Returns:
            MigrationResult; safe to re-run until migrated == 0
        """
        result = MigrationResult(dry_run=dry_run)

        # Listing failure is structural and propagates
        keys = [
            key
            for key in self.object_store.list_objects(self.bucket, PROCESSED_PREFIX)
            if is_root_level(key)
        ]
        logger.info(f"Found {len(keys)} root-level processed keys (dry_run={dry_run})")

        labels: Dict[str, Optional[Label]] = {}
        for key in keys:
            try:
                self._migrate_key(key, labels, result, dry_run)
            except (GalleryError, DatabaseError) as e:
                result.failed += 1
                result.errors.append(f"{key}: {e}")
                logger.error(f"Failed to migrate {key}: {e}")
                capture_pipeline_error(e, operation="migrate", key=key)

        if not dry_run and result.migrated:
            invalidate_listings()

        logger.info(
            f"Migration {'dry run ' if dry_run else ''}complete: {result.migrated} migrated, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result

    def _resolve_label(self, name: str, labels: Dict[str, Optional[Label]]) -> Optional[Label]:
        if name not in labels:
            labels[name] = Label.objects.filter(name=name).first()
        return labels[name]

    def _migrate_key(
        self,
        key: str,
        labels: Dict[str, Optional[Label]],
        result: MigrationResult,
        dry_run: bool,
    ) -> None:
        try:
            parsed = parse_processed_key(key)
        except GalleryError as e:
            result.skipped += 1
            result.errors.append(f"{key}: {e}")
            logger.warning(f"Skipping unparsable key {key}")
            return

        if not isinstance(parsed, LegacyKey):
            result.skipped += 1
            result.errors.append(f"{key}: not a legacy key")
            return

        if self._resolve_label(parsed.label, labels) is None:
            result.skipped += 1
            result.errors.append(f"{key}: label '{parsed.label}' not found")
            logger.warning(f"Skipping {key}: unknown label '{parsed.label}'")
            return

        target = parsed.partitioned().key

        if self.object_store.object_exists(self.bucket, target):
            result.skipped += 1
            report_consistency_warning(
                f"Legacy object {key} still present after migration to {target}",
                operation="migrate",
                key=key,
            )
            return

        # Row already at the target but no object there: the index and store disagree
        if ProcessedAsset.objects.filter(key=target).exists():
            result.failed += 1
            result.errors.append(f"{key}: a processed asset row already uses {target}")
            report_consistency_warning(
                f"Processed asset row exists for {target} without a backing object; "
                f"legacy object {key} left in place",
                operation="migrate",
                key=key,
            )
            return

        if dry_run:
            result.migrated += 1
            result.actions.append(f"{key} -> {target}")
            return

        data = self.object_store.download_object(self.bucket, key)
        self.object_store.upload_object(self.bucket, target, data)

        with transaction.atomic():
            updated = ProcessedAsset.objects.filter(key=key).update(
                key=target, filename=parsed.filename, updated_at=timezone.now()
            )
        if not updated:
            logger.warning(f"No ProcessedAsset row for {key}; moved object only")

        self.object_store.delete_object(self.bucket, key)

        result.migrated += 1
        result.actions.append(f"{key} -> {target}")
        logger.info(f"Migrated {key} -> {target}")
