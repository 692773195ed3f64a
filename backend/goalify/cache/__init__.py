"""Local, durable cache of user entities."""

from .local_store import CACHE_KINDS, CacheKey, LocalCacheStore

__all__ = ["CACHE_KINDS", "CacheKey", "LocalCacheStore"]
