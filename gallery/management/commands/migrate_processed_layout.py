"""
Management command to move legacy processed keys into label partitions.

Usage:
    python manage.py migrate_processed_layout
    python manage.py migrate_processed_layout --dry-run
"""

import logging

from django.core.management.base import BaseCommand

from gallery.services.layout_migration import LayoutMigrationEngine

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Migrate processed/<name> keys to processed/<label>/<name>."""

    help = "Migrate legacy processed object keys into label-partitioned keys"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report intended moves without touching storage or the database",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]

        if dry_run:
            self.stdout.write(self.style.WARNING("Running in dry-run mode - nothing will be moved"))

        result = LayoutMigrationEngine().migrate(dry_run=dry_run)

        for action in result.actions:
            self.stdout.write(f"  {action}")
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))

        summary = (
            f"{result.migrated} migrated, {result.skipped} skipped, {result.failed} failed"
        )
        if dry_run:
            self.stdout.write(self.style.WARNING(f"Dry run: {summary}"))
        elif result.failed:
            self.stdout.write(self.style.ERROR(f"Migration finished with failures: {summary}"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Migration complete: {summary}"))
