"""
Tests for the label-scoped processed sync.
"""

from unittest.mock import patch

import pytest

from gallery.exceptions import NotFoundError, StorageError
from gallery.models import Asset, Label, ProcessedAsset, ProcessingRun, ScrapedImage
from gallery.services.processed_sync import ProcessedSyncEngine


@pytest.fixture
def source_asset(collection, make_scrape, bucket):
    asset = Asset.objects.create(
        hash="b" * 64,
        filename="photo",
        url=collection.url,
        bucket=bucket,
        key="stored/photo",
    )
    scrape = make_scrape(collection, [("https://cdn.example.com/photo", "photo")])
    ScrapedImage.objects.filter(scrape=scrape).update(asset=asset)
    return asset


@pytest.mark.django_db
class TestProcessedSync:
    """Tests for ProcessedSyncEngine.sync_label()."""

    def test_indexes_partitioned_keys(self, label, collection, source_asset, object_store, bucket):
        key = "processed/HR/photo---processed@HR_1.webp"
        object_store.upload_object(bucket, key, b"x")

        result = ProcessedSyncEngine(object_store, bucket).sync_label(label.id)

        assert result.processed == 1
        assert result.skipped == 0
        run = ProcessingRun.objects.get()
        assert run.collection == collection
        assert run.label == label
        processed = ProcessedAsset.objects.get()
        assert processed.key == key
        assert processed.filename == "photo---processed@HR_1.webp"
        assert processed.source_asset == source_asset
        assert processed.processing_run == run

    def test_rerun_updates_instead_of_duplicating(self, label, source_asset, object_store, bucket):
        object_store.upload_object(bucket, "processed/HR/photo---processed@HR_1.webp", b"x")
        engine = ProcessedSyncEngine(object_store, bucket)

        engine.sync_label(label.id)
        result = engine.sync_label(label.id)

        assert result.processed == 1
        assert ProcessedAsset.objects.count() == 1
        assert ProcessingRun.objects.count() == 1

    def test_legacy_key_is_migrated_inline(self, label, source_asset, object_store, bucket):
        legacy = "processed/photo---processed@HR_2.webp"
        target = "processed/HR/photo---processed@HR_2.webp"
        object_store.upload_object(bucket, legacy, b"legacy-bytes")

        result = ProcessedSyncEngine(object_store, bucket).sync_label(label.id)

        assert result.processed == 1
        assert result.migrated == 1
        assert object_store.list_objects(bucket, "processed/") == [target]
        assert object_store.download_object(bucket, target) == b"legacy-bytes"
        assert ProcessedAsset.objects.get().key == target

    def test_legacy_row_is_rekeyed(self, label, collection, source_asset, object_store, bucket):
        legacy = "processed/photo---processed@HR_2.webp"
        target = "processed/HR/photo---processed@HR_2.webp"
        object_store.upload_object(bucket, legacy, b"legacy-bytes")
        run = ProcessingRun.objects.create(collection=collection, label=label)
        row = ProcessedAsset.objects.create(
            filename="photo---processed@HR_2.webp",
            bucket=bucket,
            key=legacy,
            processing_run=run,
            source_asset=source_asset,
            flagged=True,
        )

        ProcessedSyncEngine(object_store, bucket).sync_label(label.id)

        row.refresh_from_db()
        assert row.key == target
        assert row.flagged is True
        assert ProcessedAsset.objects.count() == 1

    def test_failed_inline_migration_keeps_legacy_key(self, label, source_asset, object_store, bucket):
        legacy = "processed/photo---processed@HR_2.webp"
        object_store.upload_object(bucket, legacy, b"legacy-bytes")

        with patch.object(object_store, "upload_object", side_effect=StorageError("denied")):
            result = ProcessedSyncEngine(object_store, bucket).sync_label(label.id)

        assert result.processed == 1
        assert result.migrated == 0
        assert result.errors == [f"{legacy}: failed to migrate: denied"]
        assert ProcessedAsset.objects.get().key == legacy

    def test_unresolvable_keys_are_skipped(self, label, source_asset, object_store, bucket):
        object_store.upload_object(bucket, "processed/HR/notes.txt", b"x")
        object_store.upload_object(bucket, "processed/HR/photo---processed@Other_1.webp", b"x")
        object_store.upload_object(bucket, "processed/HR/ghost---processed@HR_1.webp", b"x")
        object_store.upload_object(bucket, "processed/HR/photo---processed@HR_1.webp", b"x")

        result = ProcessedSyncEngine(object_store, bucket).sync_label(label.id)

        assert result.processed == 1
        assert result.skipped == 3
        assert "processed/HR/notes.txt: malformed key" in result.errors
        assert "processed/HR/ghost---processed@HR_1.webp: source asset 'ghost' not found" in result.errors
        assert any("does not match 'HR'" in error for error in result.errors)

    def test_asset_without_scraped_image_is_skipped(self, label, collection, object_store, bucket):
        Asset.objects.create(
            hash="c" * 64, filename="lonely", url=collection.url, bucket=bucket, key="stored/lonely"
        )
        object_store.upload_object(bucket, "processed/HR/lonely---processed@HR_1.webp", b"x")

        result = ProcessedSyncEngine(object_store, bucket).sync_label(label.id)

        assert result.skipped == 1
        assert result.errors == [
            "processed/HR/lonely---processed@HR_1.webp: scraped image not found for 'lonely'"
        ]
        assert not ProcessingRun.objects.exists()

    def test_other_labels_are_left_alone(self, label, source_asset, object_store, bucket):
        Label.objects.create(name="SDXL")
        object_store.upload_object(bucket, "processed/SDXL/photo---processed@SDXL_1.webp", b"x")
        object_store.upload_object(bucket, "processed/photo---processed@SDXL_2.webp", b"x")

        result = ProcessedSyncEngine(object_store, bucket).sync_label(label.id)

        assert result.processed == 0
        assert result.skipped == 0
        assert len(object_store.list_objects(bucket, "processed/")) == 2

    def test_unknown_label_raises(self, object_store, bucket, db):
        with pytest.raises(NotFoundError):
            ProcessedSyncEngine(object_store, bucket).sync_label("00000000-0000-0000-0000-000000000000")

        assert not Label.objects.exists()
