"""
Django models for the gallery ingestion pipeline.

Models: Label, Collection, Scrape, ScrapedImage, Asset, ProcessingRun,
        ProcessedAsset

The relational index mirrors what lives in the object store:
- Asset rows are content-addressed (one row per distinct sha-256)
- ProcessedAsset rows point at keys under processed/, in either the
  legacy flat layout or the label-partitioned layout
"""

import uuid

from django.db import models
from django.utils import timezone

from gallery.utils.fingerprint import compute_fingerprint


class ScrapingMode(models.TextChoices):
    """Extraction fidelity modes."""

    LIGHT = "light", "Light (markup only)"
    HEAVY = "heavy", "Heavy (fetch and decode images)"


class ImageSizePreset(models.TextChoices):
    """Size filter presets applied to (width, height)."""

    SMALL = "small", "Small (both <= 500px)"
    MEDIUM = "medium", "Medium (both within 500-1500px)"
    LARGE = "large", "Large (both >= 1500px)"
    ALL = "all", "All sizes"


class CollectionState(models.TextChoices):
    """Lifecycle of a Collection with respect to its Scrape."""

    UNSCRAPED = "unscraped", "Unscraped"
    SCRAPED = "scraped", "Scraped"
    STORED = "stored", "Stored"


class TimestampedModel(models.Model):
    """Abstract base providing UUID identity and audit timestamps."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        update_fields = kwargs.get("update_fields")
        self.updated_at = timezone.now()
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = [*update_fields, "updated_at"]
        super().save(*args, **kwargs)


class Label(TimestampedModel):
    """A named tag attached to collections and processing runs."""

    name = models.CharField(max_length=200, unique=True)

    class Meta:
        db_table = "labels"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Collection(TimestampedModel):
    """
    A user-supplied page URL to scrape for images.

    Deleting a collection cascades to its Scrape and that Scrape's
    ScrapedImage rows.
    """

    url = models.URLField(max_length=2000, unique=True)
    labels = models.ManyToManyField(
        Label,
        related_name="collections",
        blank=True,
        db_table="collections_labels",
    )

    class Meta:
        db_table = "collections"
        ordering = ["-created_at"]

    def __str__(self):
        return self.url[:100]

    @property
    def state(self) -> str:
        """Current lifecycle state: unscraped, scraped or stored."""
        scrape = Scrape.objects.filter(collection_id=self.id).only("stored").first()
        if scrape is None:
            return CollectionState.UNSCRAPED
        if scrape.stored:
            return CollectionState.STORED
        return CollectionState.SCRAPED


class Scrape(TimestampedModel):
    """
    Result of one extraction run against a Collection's URL.

    At most one Scrape exists per Collection; re-scraping deletes the old
    one first. ``stored`` means a store pass has completed, not that every
    image was stored.
    """

    collection = models.OneToOneField(
        Collection, on_delete=models.CASCADE, related_name="scrape"
    )
    size_preset = models.CharField(max_length=10, choices=ImageSizePreset.choices)
    scraping_mode = models.CharField(max_length=10, choices=ScrapingMode.choices)

    # Per-URL errors as {"url": ..., "error": ...} objects
    errors = models.JSONField(default=list, blank=True)
    tags = models.JSONField(default=list, blank=True)
    categories = models.JSONField(default=list, blank=True)
    model_names = models.JSONField(default=list, blank=True)
    title = models.TextField(default="Unknown")

    stored = models.BooleanField(default=False)

    class Meta:
        db_table = "scrapes"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Scrape {self.id} ({self.scraping_mode}/{self.size_preset})"

    def error_entries(self):
        return [{"url": entry["url"], "error": entry["error"]} for entry in self.errors]


class Asset(TimestampedModel):
    """
    A content-addressed, durably stored image.

    ``hash`` is unique: at most one Asset exists per distinct content.
    """

    hash = models.CharField(max_length=64, unique=True)
    filename = models.TextField()
    url = models.TextField(help_text="Page URL the image was first stored from")
    bucket = models.CharField(max_length=255)
    key = models.TextField()

    collections = models.ManyToManyField(
        Collection,
        related_name="assets",
        blank=True,
        db_table="assets_collections",
    )

    class Meta:
        db_table = "assets"
        indexes = [
            models.Index(fields=["filename"], name="assets_filenam_6c1f2e_idx"),
        ]

    def __str__(self):
        return f"{self.filename} ({self.hash[:12]})"

    @staticmethod
    def compute_hash(data: bytes) -> str:
        """Compute the content fingerprint used as the dedup key."""
        return compute_fingerprint(data)


class ScrapedImage(TimestampedModel):
    """
    One candidate image discovered during a Scrape.

    Dimensions, size and format are only known in heavy mode.
    """

    scrape = models.ForeignKey(
        Scrape, on_delete=models.CASCADE, related_name="scraped_images"
    )
    position = models.PositiveIntegerField(default=0)

    filename = models.TextField()
    url = models.TextField()
    source_url = models.TextField()

    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    file_size = models.PositiveIntegerField(null=True, blank=True)
    format = models.CharField(max_length=20, blank=True, default="")

    stored_at = models.DateTimeField(null=True, blank=True)
    asset = models.ForeignKey(
        Asset,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="scraped_images",
    )

    class Meta:
        db_table = "scraped_images"
        ordering = ["position", "created_at"]
        indexes = [
            models.Index(fields=["scrape", "position"], name="scraped_ima_scrape__3b8d0a_idx"),
        ]

    def __str__(self):
        return self.filename


class ProcessingRun(TimestampedModel):
    """A collection processed under a label."""

    collection = models.ForeignKey(
        Collection, on_delete=models.CASCADE, related_name="processing_runs"
    )
    label = models.ForeignKey(
        Label, on_delete=models.CASCADE, related_name="processing_runs"
    )

    class Meta:
        db_table = "processing_runs"
        unique_together = ["collection", "label"]

    def __str__(self):
        return f"Run {self.collection_id} / {self.label_id}"


class ProcessedAsset(TimestampedModel):
    """
    An image produced by an external processing step.

    ``key`` is either legacy (processed/<name>) or partitioned
    (processed/<label>/<name>); both must resolve during migration.
    """

    filename = models.TextField()
    bucket = models.CharField(max_length=255)
    key = models.CharField(max_length=1024, unique=True)

    hidden = models.BooleanField(default=False)
    flagged = models.BooleanField(default=False)
    score = models.IntegerField(null=True, blank=True)

    processing_run = models.ForeignKey(
        ProcessingRun, on_delete=models.CASCADE, related_name="processed_assets"
    )
    source_asset = models.ForeignKey(
        Asset, on_delete=models.PROTECT, related_name="processed_assets"
    )

    class Meta:
        db_table = "processed_assets"
        ordering = ["processing_run", "filename"]
        indexes = [
            models.Index(fields=["hidden", "flagged"], name="processed_a_hidden_9e4c71_idx"),
        ]

    def __str__(self):
        return self.key
