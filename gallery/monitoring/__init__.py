"""
Monitoring for the gallery pipeline.

- Sentry breadcrumbs and exception capture for per-item failures
- Consistency warnings for object store / index mismatches
"""

from .sentry_integration import (
    add_pipeline_breadcrumb,
    capture_pipeline_error,
    report_consistency_warning,
)

__all__ = [
    "add_pipeline_breadcrumb",
    "capture_pipeline_error",
    "report_consistency_warning",
]
