"""
Response cache manager for the Edge Proxy.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from shared.errors import CacheStoreUnavailable
from shared.logging import get_logger

from ..domain.headers import HeaderInput, get_header
from .store import CacheStore, CachedEntry

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


KEY_PREFIX = "edge-proxy"

# Request headers that select a different upstream representation.
KEY_HEADERS = ("accept-profile",)


def make_cache_key(path: str, query: str = "", headers: HeaderInput = ()) -> str:
    """Cache key for a GET of ``path?query``.

    The method is fixed to GET: only reads are ever stored, and purges address
    the entry a GET of the same URL would have created.
    """
    key_parts = ["GET", path, query]
    for name in KEY_HEADERS:
        key_parts.append(f"{name}={get_header(headers, name) or ''}")
    key_string = "\n".join(key_parts)
    return f"{KEY_PREFIX}:{hashlib.sha256(key_string.encode('utf-8')).hexdigest()}"


@dataclass(frozen=True)
class PurgeResult:
    purged: bool
    store_available: bool = True


class ResponseCacheManager:
    """Fail-open access to the response cache store.

    Lookup failures behave as misses and write/delete failures are logged, so
    an unavailable store never changes what the caller receives.
    """

    def __init__(self, store: CacheStore, *, metrics: Optional["MetricsCollector"] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("edge_proxy.cache_manager")

    @property
    def backend(self) -> str:
        return self.store.name

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    async def lookup(self, key: str) -> Optional[CachedEntry]:
        """Fetch a cached response, treating store failures as a miss."""
        try:
            entry = await self.store.lookup(key)
        except CacheStoreUnavailable as exc:
            self.logger.warning("Cache lookup failed; forwarding upstream", key=key, error=exc.reason)
            self._count("edge_cache_lookups_total", result="error")
            return None

        self._count("edge_cache_lookups_total", result="hit" if entry else "miss")
        return entry

    async def store_response(self, key: str, entry: CachedEntry, ttl: int) -> bool:
        """Store a response. Never raises; the outcome is only logged."""
        try:
            await self.store.store(key, entry, ttl)
        except CacheStoreUnavailable as exc:
            self.logger.warning("Cache write failed", key=key, error=exc.reason)
            self._count("edge_cache_writes_total", outcome="error")
            return False
        except Exception as exc:
            self.logger.error("Unexpected cache write error", key=key, error=str(exc), exc_info=True)
            self._count("edge_cache_writes_total", outcome="error")
            return False

        self.logger.debug("Cached upstream response", key=key, ttl=ttl, status_code=entry.status_code)
        self._count("edge_cache_writes_total", outcome="stored")
        return True

    async def purge(self, key: str) -> PurgeResult:
        """Delete one entry; store failures are reported, not raised."""
        try:
            purged = await self.store.delete(key)
        except CacheStoreUnavailable as exc:
            self.logger.warning("Cache purge failed", key=key, error=exc.reason)
            self._count("edge_cache_purges_total", outcome="error")
            return PurgeResult(purged=False, store_available=False)

        self._count("edge_cache_purges_total", outcome="purged" if purged else "absent")
        return PurgeResult(purged=purged)

    async def check_health(self) -> str:
        return "ok" if await self.store.ping() else "error"

    async def close(self) -> None:
        await self.store.close()
