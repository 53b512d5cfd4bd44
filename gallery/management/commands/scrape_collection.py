"""
Management command to scrape a collection's page.

Usage:
    python manage.py scrape_collection <collection_id>
    python manage.py scrape_collection <collection_id> --size large --mode heavy
"""

from django.core.management.base import BaseCommand, CommandError

from gallery.exceptions import NotFoundError, ValidationError
from gallery.models import ImageSizePreset, ScrapingMode
from gallery.services.collection_service import scrape_collection


class Command(BaseCommand):
    """Scrape a collection, replacing its previous scrape."""

    help = "Scrape the page of a collection for images"

    def add_arguments(self, parser):
        parser.add_argument("collection_id", help="Collection id")
        parser.add_argument(
            "--size",
            choices=ImageSizePreset.values,
            default=ImageSizePreset.ALL,
            help="Size preset filter (default: all)",
        )
        parser.add_argument(
            "--mode",
            choices=ScrapingMode.values,
            default=ScrapingMode.LIGHT,
            help="Scraping mode (default: light)",
        )

    def handle(self, *args, **options):
        try:
            result = scrape_collection(
                options["collection_id"], options["size"], options["mode"]
            )
        except (NotFoundError, ValidationError) as e:
            raise CommandError(str(e))

        self.stdout.write(f"Title: {result.title}")
        for image in result.images:
            self.stdout.write(f"  {image.filename} <- {image.url}")
        for url, error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {url}: {error}"))

        self.stdout.write(
            self.style.SUCCESS(
                f"Scraped {len(result.images)} images ({len(result.errors)} errors)"
            )
        )
