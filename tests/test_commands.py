"""
Tests for management commands and Celery tasks.
"""

from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from gallery import tasks
from gallery.models import Asset, ProcessedAsset, ProcessingRun, ScrapedImage

LEGACY = "processed/photo---processed@HR_1.webp"
TARGET = "processed/HR/photo---processed@HR_1.webp"


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


@pytest.fixture
def stored_source(collection, make_scrape, bucket):
    asset = Asset.objects.create(
        hash="e" * 64, filename="photo", url=collection.url, bucket=bucket, key="stored/photo"
    )
    asset.collections.add(collection)
    scrape = make_scrape(collection, [("https://cdn.example.com/photo", "photo")], stored=True)
    ScrapedImage.objects.filter(scrape=scrape).update(asset=asset)
    return asset


@pytest.mark.django_db
class TestMigrateProcessedLayoutCommand:
    """Tests for manage.py migrate_processed_layout."""

    def test_dry_run_reports_without_moving(self, label, configured_store, bucket):
        configured_store.upload_object(bucket, LEGACY, b"x")

        output = run("migrate_processed_layout", "--dry-run")

        assert f"{LEGACY} -> {TARGET}" in output
        assert "Dry run: 1 migrated, 0 skipped, 0 failed" in output
        assert configured_store.list_objects(bucket, "processed/") == [LEGACY]

    def test_migrates(self, label, configured_store, bucket):
        configured_store.upload_object(bucket, LEGACY, b"x")

        output = run("migrate_processed_layout")

        assert "Migration complete: 1 migrated" in output
        assert configured_store.list_objects(bucket, "processed/") == [TARGET]


@pytest.mark.django_db
class TestSyncProcessedLabelCommand:
    """Tests for manage.py sync_processed_label."""

    def test_sync_by_name(self, label, stored_source, configured_store, bucket):
        configured_store.upload_object(bucket, TARGET, b"x")

        output = run("sync_processed_label", "--by-name", "HR")

        assert "Sync complete: 1 processed, 0 skipped, 0 failed, 0 migrated" in output
        assert ProcessedAsset.objects.get().key == TARGET

    def test_unknown_label_name(self, configured_store, db):
        with pytest.raises(CommandError):
            run("sync_processed_label", "--by-name", "Nobody")

    def test_unknown_label_id(self, configured_store, db):
        with pytest.raises(CommandError):
            run("sync_processed_label", "00000000-0000-0000-0000-000000000000")


@pytest.mark.django_db
class TestStoreAndReconcileCommands:
    """Tests for manage.py store_scrape and reconcile_assets."""

    def test_store_unknown_scrape(self, configured_store, db):
        with pytest.raises(CommandError):
            run("store_scrape", "00000000-0000-0000-0000-000000000000")

    def test_reconcile_reports_missing_object(self, stored_source, configured_store):
        output = run("reconcile_assets")

        assert "missing object: stored/photo" in output
        assert "Checked 1 assets: 1 missing objects, 0 orphaned, 0 deleted" in output


@pytest.mark.django_db
class TestTasks:
    """Tasks return their operation's result as a dict."""

    def test_migrate_task(self, label, configured_store, bucket):
        configured_store.upload_object(bucket, LEGACY, b"x")

        result = tasks.migrate_processed_layout(dry_run=True)

        assert result["dry_run"] is True
        assert result["actions"] == [f"{LEGACY} -> {TARGET}"]

    def test_sync_task(self, label, stored_source, configured_store, bucket):
        configured_store.upload_object(bucket, LEGACY, b"x")

        result = tasks.sync_processed_label(str(label.id))

        assert result["processed"] == 1
        assert result["migrated"] == 1
        assert ProcessingRun.objects.count() == 1

    def test_reclaim_and_reconcile_tasks(self, configured_store, bucket, db):
        configured_store.upload_object(bucket, "stored/orphan.png", b"x")
        orphan = Asset.objects.create(
            hash="f" * 64,
            filename="orphan.png",
            url="https://gallery.example.com/set/9",
            bucket=bucket,
            key="stored/orphan.png",
        )

        report = tasks.reconcile_assets()
        assert report["orphaned"] == ["stored/orphan.png"]

        result = tasks.reclaim_orphans([str(orphan.id)])
        assert result["deleted"] == 1
        assert configured_store.list_objects(bucket, "stored/") == []

    def test_store_task(self, collection, make_scrape, configured_store, bucket, monkeypatch, fake_downloader, image_bytes):
        scrape = make_scrape(collection, [("https://cdn.example.com/a.png", "a.png")])
        downloader = fake_downloader({"https://cdn.example.com/a.png": image_bytes(10, 10)})
        monkeypatch.setattr("gallery.services.store_pipeline.HttpxDownloader", lambda: downloader)

        result = tasks.store_scrape(str(scrape.id))

        assert result == {"stored": 1, "failed": 0, "errors": []}
        assert configured_store.list_objects(bucket, "stored/") == ["stored/a.png"]
