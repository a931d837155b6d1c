"""
Edge Proxy caching package.

Decides which upstream reads are cacheable, stores them in the external
response cache and serves explicit purges. Only master data is cached;
everything else is marked no-store.
"""

from .cache_manager import ResponseCacheManager, make_cache_key
from .classifier import CacheClassifier, CacheDisposition, ResourceClass
from .store import CachedEntry, CacheStore, InMemoryCacheStore, RedisCacheStore

__all__ = [
    "CacheClassifier",
    "CacheDisposition",
    "CachedEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "ResourceClass",
    "ResponseCacheManager",
    "make_cache_key",
]
