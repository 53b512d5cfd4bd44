"""
Management command to store a scrape's images as deduplicated assets.

Usage:
    python manage.py store_scrape <scrape_id>
"""

from django.core.management.base import BaseCommand, CommandError

from gallery.exceptions import NotFoundError, ValidationError
from gallery.services.store_pipeline import StorePipeline


class Command(BaseCommand):
    """Download, fingerprint and store every image of a scrape."""

    help = "Store the images of a scrape in the object store"

    def add_arguments(self, parser):
        parser.add_argument("scrape_id", help="Scrape id")
        parser.add_argument(
            "--collection",
            dest="collection_id",
            default=None,
            help="Require the scrape to belong to this collection",
        )

    def handle(self, *args, **options):
        try:
            result = StorePipeline().store(
                options["scrape_id"], collection_id=options["collection_id"]
            )
        except (NotFoundError, ValidationError) as e:
            raise CommandError(str(e))

        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))

        message = f"{result.stored} stored, {result.failed} failed"
        if result.failed:
            self.stdout.write(self.style.WARNING(f"Store finished with failures: {message}"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Store complete: {message}"))
