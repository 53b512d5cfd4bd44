"""
Gallery application configuration.
"""

from django.apps import AppConfig


class GalleryConfig(AppConfig):
    """Configuration for the gallery Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "gallery"
    verbose_name = "Gallery Ingestion"
