"""
Tests for migrating legacy processed keys into label partitions.
"""

from unittest.mock import patch

import pytest

from gallery.exceptions import StorageError
from gallery.models import Asset, ProcessedAsset, ProcessingRun
from gallery.services.layout_migration import LayoutMigrationEngine

LEGACY = "processed/photo---processed@HR_1.webp"
TARGET = "processed/HR/photo---processed@HR_1.webp"


@pytest.fixture
def processed_row(collection, label, bucket):
    asset = Asset.objects.create(
        hash="a" * 64,
        filename="photo",
        url=collection.url,
        bucket=bucket,
        key="stored/photo",
    )
    run = ProcessingRun.objects.create(collection=collection, label=label)
    return ProcessedAsset.objects.create(
        filename="photo---processed@HR_1.webp",
        bucket=bucket,
        key=LEGACY,
        processing_run=run,
        source_asset=asset,
    )


@pytest.mark.django_db
class TestLayoutMigration:
    """Tests for LayoutMigrationEngine.migrate()."""

    def test_moves_object_and_rewrites_key(self, processed_row, object_store, bucket):
        object_store.upload_object(bucket, LEGACY, b"processed-bytes")

        result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.migrated == 1
        assert result.failed == 0
        assert result.actions == [f"{LEGACY} -> {TARGET}"]
        assert object_store.list_objects(bucket, "processed/") == [TARGET]
        assert object_store.download_object(bucket, TARGET) == b"processed-bytes"

        processed_row.refresh_from_db()
        assert processed_row.key == TARGET
        assert processed_row.filename == "photo---processed@HR_1.webp"

    def test_second_run_is_noop(self, processed_row, object_store, bucket):
        object_store.upload_object(bucket, LEGACY, b"processed-bytes")
        engine = LayoutMigrationEngine(object_store, bucket)

        engine.migrate()
        result = engine.migrate()

        assert result.migrated == 0
        assert result.skipped == 0
        assert result.errors == []

    def test_dry_run_changes_nothing(self, processed_row, object_store, bucket):
        object_store.upload_object(bucket, LEGACY, b"processed-bytes")

        result = LayoutMigrationEngine(object_store, bucket).migrate(dry_run=True)

        assert result.dry_run is True
        assert result.migrated == 1
        assert result.actions == [f"{LEGACY} -> {TARGET}"]
        assert object_store.list_objects(bucket, "processed/") == [LEGACY]
        processed_row.refresh_from_db()
        assert processed_row.key == LEGACY

    def test_unknown_label_is_skipped(self, object_store, bucket, db):
        key = "processed/photo---processed@Nobody_2.png"
        object_store.upload_object(bucket, key, b"x")

        result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.migrated == 0
        assert result.skipped == 1
        assert result.errors == [f"{key}: label 'Nobody' not found"]
        assert object_store.list_objects(bucket, "processed/") == [key]

    def test_unparsable_key_is_skipped(self, object_store, bucket, db):
        object_store.upload_object(bucket, "processed/readme.txt", b"x")

        result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.skipped == 1
        assert result.errors[0].startswith("processed/readme.txt: ")

    def test_existing_target_is_not_overwritten(self, processed_row, object_store, bucket):
        object_store.upload_object(bucket, LEGACY, b"old")
        object_store.upload_object(bucket, TARGET, b"new")

        with patch("gallery.services.layout_migration.report_consistency_warning") as warn:
            result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.migrated == 0
        assert result.skipped == 1
        assert object_store.download_object(bucket, TARGET) == b"new"
        warn.assert_called_once()

    def test_missing_row_still_moves_object(self, label, object_store, bucket):
        object_store.upload_object(bucket, LEGACY, b"orphan-bytes")

        result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.migrated == 1
        assert object_store.list_objects(bucket, "processed/") == [TARGET]

    def test_upload_failure_keeps_legacy_object(self, processed_row, object_store, bucket):
        object_store.upload_object(bucket, LEGACY, b"processed-bytes")

        with patch.object(object_store, "upload_object", side_effect=StorageError("denied")):
            result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.failed == 1
        assert result.errors == [f"{LEGACY}: denied"]
        assert object_store.list_objects(bucket, "processed/") == [LEGACY]
        processed_row.refresh_from_db()
        assert processed_row.key == LEGACY

    def test_partitioned_keys_are_ignored(self, label, object_store, bucket):
        object_store.upload_object(bucket, TARGET, b"already-there")

        result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.migrated == 0
        assert result.skipped == 0

    def test_row_already_at_target_fails_only_that_key(self, processed_row, object_store, bucket):
        """A stale row holding the target key fails one key; siblings still migrate."""
        ProcessedAsset.objects.create(
            filename="photo---processed@HR_1.webp",
            bucket=bucket,
            key=TARGET,
            processing_run=processed_row.processing_run,
            source_asset=processed_row.source_asset,
        )
        other = "processed/zzz---processed@HR_1.webp"
        object_store.upload_object(bucket, LEGACY, b"processed-bytes")
        object_store.upload_object(bucket, other, b"other-bytes")

        with patch("gallery.services.layout_migration.report_consistency_warning") as warn:
            result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.failed == 1
        assert result.migrated == 1
        assert result.errors[0].startswith(f"{LEGACY}: ")
        assert result.actions == [f"{other} -> processed/HR/zzz---processed@HR_1.webp"]
        assert object_store.list_objects(bucket, "processed/") == [
            "processed/HR/zzz---processed@HR_1.webp",
            LEGACY,
        ]
        processed_row.refresh_from_db()
        assert processed_row.key == LEGACY
        warn.assert_called_once()

    def test_database_error_on_index_update_is_per_key(self, processed_row, object_store, bucket):
        from django.db import IntegrityError

        object_store.upload_object(bucket, LEGACY, b"processed-bytes")

        with patch(
            "gallery.services.layout_migration.ProcessedAsset.objects.filter"
        ) as mock_filter:
            mock_filter.return_value.exists.return_value = False
            mock_filter.return_value.update.side_effect = IntegrityError("unique constraint")
            result = LayoutMigrationEngine(object_store, bucket).migrate()

        assert result.failed == 1
        assert result.errors == [f"{LEGACY}: unique constraint"]
        assert LEGACY in object_store.list_objects(bucket, "processed/")
