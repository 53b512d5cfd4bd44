"""
Sentry error tracking for the gallery pipeline.

Per-item failures (one image, one key, one URL) are logged and then sent to
Sentry with the entity key attached. The SDK itself is initialised in
settings and is a no-op when SENTRY_DSN is empty.

Usage:
    from gallery.monitoring import capture_pipeline_error

    try:
        data = downloader.download(url)
    except FetchError as e:
        capture_pipeline_error(e, operation="store", key=url)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

from gallery.exceptions import ConsistencyWarning

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "authorization",
    "auth",
    "password",
    "secret",
    "token",
    "signature",
    "x-amz-signature",
    "aws_secret_access_key",
    "api_key",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Filter sensitive data from a dictionary.

    Replaces values for keys that match sensitive field names, recursing
    into nested dicts.
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value
    return filtered


def add_pipeline_breadcrumb(
    message: str,
    key: Optional[str] = None,
    operation: Optional[str] = None,
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb to Sentry for pipeline context.

    Args:
        message: Description of the operation
        key: Entity key (image URL, object key, page URL)
        operation: Pipeline operation (scrape, store, migrate, sync, reclaim)
        level: Log level (info, warning, error)
        extra_data: Additional context data
    """
    data: Dict[str, Any] = {}
    if key:
        data["key"] = key
    if operation:
        data["operation"] = operation
    if extra_data:
        data.update(_filter_sensitive_data(extra_data))

    try:
        sentry_sdk.add_breadcrumb(
            category="pipeline",
            message=message,
            level=level,
            data=data,
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_pipeline_error(
    error: Exception,
    operation: str,
    key: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a per-item pipeline failure to Sentry.

    Args:
        error: The exception that occurred
        operation: Pipeline operation (scrape, store, migrate, sync, reclaim)
        key: Entity key the failure belongs to
        extra_context: Additional context (filtered for sensitive data)
    """
    add_pipeline_breadcrumb(
        message=f"Error: {type(error).__name__}",
        key=key,
        operation=operation,
        level="error",
        extra_data=extra_context,
    )

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("gallery.operation", operation)
            if key:
                scope.set_extra("entity_key", key)
            if extra_context:
                scope.set_extra("pipeline_context", _filter_sensitive_data(extra_context))
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")


def report_consistency_warning(
    message: str,
    operation: str,
    key: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a non-fatal mismatch between the object store and the index.

    The warning is logged and forwarded to Sentry as a message; it is never
    raised.
    """
    logger.warning(f"{ConsistencyWarning.__name__}: {message}")

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("gallery.operation", operation)
            scope.set_tag("alert.type", "consistency")
            if key:
                scope.set_extra("entity_key", key)
            if extra_data:
                scope.set_extra("consistency_data", _filter_sensitive_data(extra_data))
            sentry_sdk.capture_message(message, level="warning")
    except Exception as e:
        logger.warning(f"Failed to capture consistency warning to Sentry: {e}")
