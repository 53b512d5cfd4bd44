"""
Services module for the gallery pipeline.

Contains:
- image_extractor: per-page image extraction (light and heavy modes)
- scrape_aggregator: multi-page scrape with URL/filename dedup
- collection_service: Collection and Scrape lifecycle
- store_pipeline: content-addressed storage of scraped images
- orphan_reclaimer: reclaim unreferenced Assets, reconcile index vs store
- processed_keys: legacy and partitioned processed key formats
- layout_migration: legacy to partitioned key migration
- processed_sync: label-scoped sync of processed objects into the index
- processed_assets: processed asset listing and flag updates
- listing_cache: explicitly invalidated listing cache
"""

from gallery.services.image_extractor import (
    ExtractedImage,
    ImageExtractor,
    PageExtraction,
    matches_size_preset,
)
from gallery.services.scrape_aggregator import ScrapeAggregator, ScrapeResult
from gallery.services.store_pipeline import StorePipeline, StoreResult
from gallery.services.orphan_reclaimer import (
    OrphanReclaimer,
    ReclaimResult,
    ReconcileResult,
    get_orphan_reclaimer,
)
from gallery.services.processed_keys import (
    LegacyKey,
    PartitionedKey,
    parse_processed_key,
)
from gallery.services.layout_migration import LayoutMigrationEngine, MigrationResult
from gallery.services.processed_sync import ProcessedSyncEngine, SyncResult
from gallery.services.listing_cache import ListingCache, get_listing_cache

__all__ = [
    "ExtractedImage",
    "ImageExtractor",
    "PageExtraction",
    "matches_size_preset",
    "ScrapeAggregator",
    "ScrapeResult",
    "StorePipeline",
    "StoreResult",
    "OrphanReclaimer",
    "ReclaimResult",
    "ReconcileResult",
    "get_orphan_reclaimer",
    "LegacyKey",
    "PartitionedKey",
    "parse_processed_key",
    "LayoutMigrationEngine",
    "MigrationResult",
    "ProcessedSyncEngine",
    "SyncResult",
    "ListingCache",
    "get_listing_cache",
]
