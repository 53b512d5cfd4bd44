"""
Management command to compare Asset rows against the object store.

Reports Assets whose stored bytes are missing and Assets that no longer
have any reference. With --delete the orphaned Assets are reclaimed.

Usage:
    python manage.py reconcile_assets
    python manage.py reconcile_assets --delete
"""

from django.core.management.base import BaseCommand

from gallery.services.orphan_reclaimer import OrphanReclaimer


class Command(BaseCommand):
    """Reconcile the Asset index with the object store."""

    help = "Report missing asset objects and orphaned assets"

    def add_arguments(self, parser):
        parser.add_argument(
            "--delete",
            action="store_true",
            help="Reclaim orphaned assets (bytes and rows)",
        )

    def handle(self, *args, **options):
        result = OrphanReclaimer().reconcile(delete=options["delete"])

        for key in result.missing_objects:
            self.stdout.write(self.style.WARNING(f"  missing object: {key}"))
        for key in result.orphaned:
            self.stdout.write(f"  orphaned: {key}")
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))

        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {result.checked} assets: {len(result.missing_objects)} missing objects, "
                f"{len(result.orphaned)} orphaned, {result.deleted} deleted"
            )
        )
