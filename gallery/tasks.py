"""
Celery tasks for the gallery pipeline.

Each task wraps one exposed operation and returns its result as a dict:
- scrape_collection: scrape a collection's URL (replaces the previous Scrape)
- store_scrape: store a Scrape's images as deduplicated Assets
- reclaim_orphans: delete unreferenced Assets
- migrate_processed_layout: move legacy processed keys into label partitions
- sync_processed_label: sync one label's processed objects into the index
- reconcile_assets: periodic report of index / object store mismatches
"""

import logging
from typing import Any, Dict, List

from celery import shared_task

from gallery.services.collection_service import scrape_collection as run_scrape
from gallery.services.layout_migration import LayoutMigrationEngine
from gallery.services.orphan_reclaimer import OrphanReclaimer
from gallery.services.processed_sync import ProcessedSyncEngine
from gallery.services.store_pipeline import StorePipeline

logger = logging.getLogger(__name__)


@shared_task(name="gallery.tasks.scrape_collection")
def scrape_collection(collection_id: str, size_preset: str, mode: str) -> Dict[str, Any]:
    logger.info(f"Scraping collection {collection_id} ({mode}/{size_preset})")
    return run_scrape(collection_id, size_preset, mode).to_dict()


@shared_task(name="gallery.tasks.store_scrape")
def store_scrape(scrape_id: str, collection_id: str = None) -> Dict[str, Any]:
    logger.info(f"Storing scrape {scrape_id}")
    return StorePipeline().store(scrape_id, collection_id=collection_id).to_dict()


@shared_task(name="gallery.tasks.reclaim_orphans")
def reclaim_orphans(asset_ids: List[str]) -> Dict[str, Any]:
    return OrphanReclaimer().reclaim(asset_ids).to_dict()


@shared_task(name="gallery.tasks.migrate_processed_layout")
def migrate_processed_layout(dry_run: bool = False) -> Dict[str, Any]:
    return LayoutMigrationEngine().migrate(dry_run=dry_run).to_dict()


@shared_task(name="gallery.tasks.sync_processed_label")
def sync_processed_label(label_id: str) -> Dict[str, Any]:
    return ProcessedSyncEngine().sync_label(label_id).to_dict()


@shared_task(name="gallery.tasks.reconcile_assets")
def reconcile_assets(delete: bool = False) -> Dict[str, Any]:
    """
    Report Assets with missing bytes and orphaned Assets.

    Runs nightly via Celery Beat in report-only mode.
    """
    result = OrphanReclaimer().reconcile(delete=delete)
    if result.missing_objects or result.orphaned:
        logger.warning(
            f"Reconcile found {len(result.missing_objects)} missing objects "
            f"and {len(result.orphaned)} orphaned assets"
        )
    return result.to_dict()
