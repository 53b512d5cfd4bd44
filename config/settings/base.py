"""
Django base settings for the gallery ingestion service.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-gallery-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition
# The HTTP layer lives in a separate service; this project exposes
# services, Celery tasks and management commands only.

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # Local apps
    "gallery",
]

MIDDLEWARE = []

ROOT_URLCONF = "config.urls"


# Database
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Default primary key field type
# https://docs.djangoproject.com/en/4.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache Configuration
# "listings" holds listing query results and is invalidated explicitly by
# every state-changing pipeline operation; it is process-local.

GALLERY_LISTING_CACHE_TTL = int(os.getenv("GALLERY_LISTING_CACHE_TTL", "300"))

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "gallery-default",
    },
    "listings": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "gallery-listings",
        "TIMEOUT": GALLERY_LISTING_CACHE_TTL,
    },
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 60 * 60  # 1 hour max for migration and sync runs


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "gallery": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/
# Reporting is disabled when SENTRY_DSN is empty.

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Object Storage Configuration

# "local" (filesystem emulation) or "s3"; chosen once per process
GALLERY_STORAGE_BACKEND = os.getenv("GALLERY_STORAGE_BACKEND", "local")

# Bucket holding stored/ originals and processed/ outputs
GALLERY_ASSETS_BUCKET = os.getenv("GALLERY_ASSETS_BUCKET", "gallery-assets")

GALLERY_LOCAL_STORAGE_PATH = os.getenv(
    "GALLERY_LOCAL_STORAGE_PATH", str(BASE_DIR / "var" / "objects")
)
GALLERY_LOCAL_ASSET_BASE_URL = os.getenv(
    "GALLERY_LOCAL_ASSET_BASE_URL", "http://localhost:8000/objects"
)

AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

# Expiry of signed read URLs handed to callers (seconds)
GALLERY_SIGNED_URL_TTL = int(os.getenv("GALLERY_SIGNED_URL_TTL", "3600"))


# Fetch Configuration

# Page fetch timeout (seconds)
GALLERY_REQUEST_TIMEOUT = int(os.getenv("GALLERY_REQUEST_TIMEOUT", "30"))

# Heavy-mode image fetch timeout (seconds)
GALLERY_IMAGE_TIMEOUT = int(os.getenv("GALLERY_IMAGE_TIMEOUT", "15"))

# Store pipeline image download timeout (seconds)
GALLERY_STORE_TIMEOUT = int(os.getenv("GALLERY_STORE_TIMEOUT", "30"))
