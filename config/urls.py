"""
URL configuration for the gallery ingestion service.

The HTTP layer is served elsewhere; this project has no routes.
"""

urlpatterns = []
