"""
Celery configuration for the gallery ingestion service.

Scraping and storage run on separate queues so slow page fetches do not
hold up object store work.
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("gallery")

# namespace='CELERY' means all celery-related configuration keys
# should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "scrape": {
        "exchange": "scrape",
        "routing_key": "scrape",
    },
    "storage": {
        "exchange": "storage",
        "routing_key": "storage",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "gallery.tasks.scrape_collection": {"queue": "scrape"},
    "gallery.tasks.store_scrape": {"queue": "storage"},
    "gallery.tasks.reclaim_orphans": {"queue": "storage"},
    "gallery.tasks.migrate_processed_layout": {"queue": "storage"},
    "gallery.tasks.sync_processed_label": {"queue": "storage"},
    "gallery.tasks.reconcile_assets": {"queue": "default"},
}

app.conf.beat_schedule = {
    "reconcile-assets-nightly": {
        "task": "gallery.tasks.reconcile_assets",
        "schedule": crontab(hour=3, minute=0),
        "kwargs": {"delete": False},
    },
}
