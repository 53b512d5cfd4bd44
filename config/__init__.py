"""Django project package for the gallery ingestion service."""

from .celery import app as celery_app

__all__ = ("celery_app",)
