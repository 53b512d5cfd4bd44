"""
Listing Cache.

Caches listing query results under a canonical signature of the query
parameters. Every state-changing pipeline operation (store, delete and
reclaim, migrate, sync, flag updates) calls invalidate(), which bumps a
generation counter so all previously cached listings become unreachable.
"""

import hashlib
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.conf import settings
from django.core.cache import caches

from gallery.exceptions import ValidationError

logger = logging.getLogger(__name__)

CACHE_ALIAS = "listings"
GENERATION_KEY = "gallery:listings:generation"


def query_signature(namespace: str, params: Dict[str, Any]) -> str:
    """Stable hash of a listing query; parameter order does not matter."""
    canonical = json.dumps(
        {"namespace": namespace, "params": params},
        sort_keys=True,
        default=str,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ListingCache:
    """Explicitly invalidated cache for listing queries."""

    def __init__(self, alias: str = CACHE_ALIAS, timeout: Optional[int] = None):
        self.cache = caches[alias]
        self.timeout = timeout if timeout is not None else getattr(
            settings, "GALLERY_LISTING_CACHE_TTL", None
        )

    def _generation(self) -> int:
        generation = self.cache.get(GENERATION_KEY)
        if generation is None:
            self.cache.add(GENERATION_KEY, 0, timeout=None)
            generation = self.cache.get(GENERATION_KEY, 0)
        return generation

    def _key(self, namespace: str, params: Dict[str, Any]) -> str:
        return f"gallery:listings:{self._generation()}:{query_signature(namespace, params)}"

    def get_or_compute(
        self, namespace: str, params: Dict[str, Any], compute: Callable[[], Any]
    ) -> Any:
        """Return the cached listing, computing and caching it on a miss."""
        key = self._key(namespace, params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Listing cache hit: {namespace}")
            return cached

        value = compute()
        self.cache.set(key, value, timeout=self.timeout)
        return value

    def invalidate(self) -> None:
        """Drop every cached listing."""
        self.cache.add(GENERATION_KEY, 0, timeout=None)
        try:
            self.cache.incr(GENERATION_KEY)
        except ValueError:
            # Generation evicted between add and incr
            self.cache.set(GENERATION_KEY, 1, timeout=None)
        logger.debug("Listing cache invalidated")


_listing_cache: Optional[ListingCache] = None


def get_listing_cache() -> ListingCache:
    """Get the process-wide listing cache."""
    global _listing_cache
    if _listing_cache is None:
        _listing_cache = ListingCache()
    return _listing_cache


def invalidate_listings() -> None:
    get_listing_cache().invalidate()


def resolve_ordering(sort: Optional[str], allowed: Iterable[str], default: List[str]) -> List[str]:
    """
    Turn a "field" or "-field" sort spec into an order_by list.

    Raises:
        ValidationError: the field is not sortable
    """
    if not sort:
        return default
    field = sort[1:] if sort.startswith("-") else sort
    if field not in allowed:
        raise ValidationError(f"Cannot sort by: {sort}")
    return [sort, "id"]
