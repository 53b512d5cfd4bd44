"""
Management command to sync one label's processed objects into the index.

Usage:
    python manage.py sync_processed_label <label>
    python manage.py sync_processed_label --by-name HR
"""

from django.core.management.base import BaseCommand, CommandError

from gallery.exceptions import NotFoundError
from gallery.models import Label
from gallery.services.processed_sync import ProcessedSyncEngine


class Command(BaseCommand):
    """Sync processed/<label>/ (and matching legacy keys) into ProcessedAsset rows."""

    help = "Sync processed objects of one label into the database"

    def add_arguments(self, parser):
        parser.add_argument("label", help="Label id, or label name with --by-name")
        parser.add_argument(
            "--by-name",
            action="store_true",
            help="Treat the argument as a label name instead of an id",
        )

    def handle(self, *args, **options):
        label_ref = options["label"]

        if options["by_name"]:
            label = Label.objects.filter(name=label_ref).first()
            if label is None:
                raise CommandError(f"Label not found: {label_ref}")
            label_id = label.id
        else:
            label_id = label_ref

        try:
            result = ProcessedSyncEngine().sync_label(label_id)
        except NotFoundError as e:
            raise CommandError(str(e))

        for error in result.errors:
            self.stdout.write(self.style.WARNING(f"  {error}"))

        self.stdout.write(
            self.style.SUCCESS(
                f"Sync complete: {result.processed} processed, {result.skipped} skipped, "
                f"{result.failed} failed, {result.migrated} migrated"
            )
        )
