"""Volatile caching: suggestions, pending builds and catalogs."""

from concierge.cache.catalog import CatalogCache
from concierge.cache.suggestions import SuggestionCache, pending_build_key
from concierge.cache.volatile import CacheError, VolatileCache

__all__ = [
    "CacheError",
    "CatalogCache",
    "SuggestionCache",
    "VolatileCache",
    "pending_build_key",
]
