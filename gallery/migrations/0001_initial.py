import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Label",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("name", models.CharField(max_length=200, unique=True)),
            ],
            options={
                "db_table": "labels",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Collection",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("url", models.URLField(max_length=2000, unique=True)),
                (
                    "labels",
                    models.ManyToManyField(
                        blank=True,
                        db_table="collections_labels",
                        related_name="collections",
                        to="gallery.label",
                    ),
                ),
            ],
            options={
                "db_table": "collections",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Asset",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("hash", models.CharField(max_length=64, unique=True)),
                ("filename", models.TextField()),
                ("url", models.TextField(help_text="Page URL the image was first stored from")),
                ("bucket", models.CharField(max_length=255)),
                ("key", models.TextField()),
                (
                    "collections",
                    models.ManyToManyField(
                        blank=True,
                        db_table="assets_collections",
                        related_name="assets",
                        to="gallery.collection",
                    ),
                ),
            ],
            options={
                "db_table": "assets",
                "indexes": [models.Index(fields=["filename"], name="assets_filenam_6c1f2e_idx")],
            },
        ),
        migrations.CreateModel(
            name="Scrape",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "size_preset",
                    models.CharField(
                        choices=[
                            ("small", "Small (both <= 500px)"),
                            ("medium", "Medium (both within 500-1500px)"),
                            ("large", "Large (both >= 1500px)"),
                            ("all", "All sizes"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "scraping_mode",
                    models.CharField(
                        choices=[
                            ("light", "Light (markup only)"),
                            ("heavy", "Heavy (fetch and decode images)"),
                        ],
                        max_length=10,
                    ),
                ),
                ("errors", models.JSONField(blank=True, default=list)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("categories", models.JSONField(blank=True, default=list)),
                ("model_names", models.JSONField(blank=True, default=list)),
                ("title", models.TextField(default="Unknown")),
                ("stored", models.BooleanField(default=False)),
                (
                    "collection",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="scrape",
                        to="gallery.collection",
                    ),
                ),
            ],
            options={
                "db_table": "scrapes",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ScrapedImage",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("position", models.PositiveIntegerField(default=0)),
                ("filename", models.TextField()),
                ("url", models.TextField()),
                ("source_url", models.TextField()),
                ("width", models.PositiveIntegerField(blank=True, null=True)),
                ("height", models.PositiveIntegerField(blank=True, null=True)),
                ("file_size", models.PositiveIntegerField(blank=True, null=True)),
                ("format", models.CharField(blank=True, default="", max_length=20)),
                ("stored_at", models.DateTimeField(blank=True, null=True)),
                (
                    "asset",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="scraped_images",
                        to="gallery.asset",
                    ),
                ),
                (
                    "scrape",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="scraped_images",
                        to="gallery.scrape",
                    ),
                ),
            ],
            options={
                "db_table": "scraped_images",
                "ordering": ["position", "created_at"],
                "indexes": [models.Index(fields=["scrape", "position"], name="scraped_ima_scrape__3b8d0a_idx")],
            },
        ),
        migrations.CreateModel(
            name="ProcessingRun",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "collection",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="processing_runs",
                        to="gallery.collection",
                    ),
                ),
                (
                    "label",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="processing_runs",
                        to="gallery.label",
                    ),
                ),
            ],
            options={
                "db_table": "processing_runs",
                "unique_together": {("collection", "label")},
            },
        ),
        migrations.CreateModel(
            name="ProcessedAsset",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("filename", models.TextField()),
                ("bucket", models.CharField(max_length=255)),
                ("key", models.CharField(max_length=1024, unique=True)),
                ("hidden", models.BooleanField(default=False)),
                ("flagged", models.BooleanField(default=False)),
                ("score", models.IntegerField(blank=True, null=True)),
                (
                    "processing_run",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="processed_assets",
                        to="gallery.processingrun",
                    ),
                ),
                (
                    "source_asset",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="processed_assets",
                        to="gallery.asset",
                    ),
                ),
            ],
            options={
                "db_table": "processed_assets",
                "ordering": ["processing_run", "filename"],
                "indexes": [models.Index(fields=["hidden", "flagged"], name="processed_a_hidden_9e4c71_idx")],
            },
        ),
    ]
