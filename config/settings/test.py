"""
Test settings for the gallery ingestion service.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

import os
import tempfile
from .base import *

# Test mode
DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# Test database - in-memory SQLite for speed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "unique-snowflake",
    },
    "listings": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-listings",
    },
}

# Test Celery - run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Test logging - minimal output
LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["gallery"]["level"] = "WARNING"

# Disable Sentry in tests
SENTRY_DSN = ""

# Tests swap in a tmp_path-rooted store; this is only the fallback
GALLERY_STORAGE_BACKEND = "local"
GALLERY_ASSETS_BUCKET = "test-bucket"
GALLERY_LOCAL_STORAGE_PATH = os.path.join(tempfile.gettempdir(), "gallery-test-objects")
GALLERY_LOCAL_ASSET_BASE_URL = "http://testserver/objects"

# Test fetch settings - fail fast
GALLERY_REQUEST_TIMEOUT = 5
GALLERY_IMAGE_TIMEOUT = 5
GALLERY_STORE_TIMEOUT = 5
