"""
Response cache stores for the Edge Proxy.

Stores hold opaque upstream responses addressed by an already-built cache key.
Every operation may raise ``CacheStoreUnavailable``; deciding what a failure
means for the request is left to the cache manager.
"""

import base64
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import CacheStoreUnavailable
from shared.logging import get_logger

from ..domain.headers import HeaderList, freeze


@dataclass(frozen=True)
class CachedEntry:
    """A stored upstream response."""

    status_code: int
    headers: HeaderList
    body: bytes
    stored_at: float = field(default_factory=time.time)

    def to_json(self) -> str:
        return json.dumps({
            "status_code": self.status_code,
            "headers": [list(pair) for pair in self.headers],
            "body": base64.b64encode(self.body).decode("ascii"),
            "stored_at": self.stored_at,
        })

    @classmethod
    def from_json(cls, payload: Any) -> "CachedEntry":
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        data = json.loads(payload)
        return cls(
            status_code=int(data["status_code"]),
            headers=freeze(tuple(pair) for pair in data["headers"]),
            body=base64.b64decode(data["body"]),
            stored_at=float(data.get("stored_at", 0.0)),
        )


class CacheStore(ABC):
    """Interface to the external response cache."""

    name = "abstract"

    @abstractmethod
    async def lookup(self, key: str) -> Optional[CachedEntry]:
        """Return the entry stored under ``key``, or ``None``."""

    @abstractmethod
    async def store(self, key: str, entry: CachedEntry, ttl: int) -> None:
        """Store ``entry`` under ``key`` for ``ttl`` seconds."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``; report whether an entry was present."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryCacheStore(CacheStore):
    """Process-local store for development and tests."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[CachedEntry, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> Optional[CachedEntry]:
        item = self._entries.get(key)
        if item is None:
            return None
        entry, expires_at = item
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return entry

    async def lookup(self, key: str) -> Optional[CachedEntry]:
        return self._live(key)

    async def store(self, key: str, entry: CachedEntry, ttl: int) -> None:
        self._entries[key] = (entry, self._clock() + ttl)

    async def delete(self, key: str) -> bool:
        present = self._live(key) is not None
        self._entries.pop(key, None)
        return present


class RedisCacheStore(CacheStore):
    """Redis-backed store; entries expire through Redis TTLs."""

    name = "redis"

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("edge_proxy.cache_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def lookup(self, key: str) -> Optional[CachedEntry]:
        try:
            redis_client = await self._get_redis()
            payload = await redis_client.get(key)
        except (RedisError, OSError) as exc:
            raise CacheStoreUnavailable("lookup", str(exc)) from exc

        if payload is None:
            return None
        try:
            return CachedEntry.from_json(payload)
        except (ValueError, KeyError, TypeError) as exc:
            self.logger.warning("Discarding unreadable cache entry", key=key, error=str(exc))
            return None

    async def store(self, key: str, entry: CachedEntry, ttl: int) -> None:
        try:
            redis_client = await self._get_redis()
            await redis_client.setex(key, ttl, entry.to_json())
        except (RedisError, OSError) as exc:
            raise CacheStoreUnavailable("store", str(exc)) from exc
        self.logger.debug("Cached response", key=key, ttl=ttl)

    async def delete(self, key: str) -> bool:
        try:
            redis_client = await self._get_redis()
            removed = await redis_client.delete(key)
        except (RedisError, OSError) as exc:
            raise CacheStoreUnavailable("delete", str(exc)) from exc
        return bool(removed)

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_cache_store(backend: str, redis_url: str) -> CacheStore:
    """Build the configured store backend."""
    if backend == "redis":
        return RedisCacheStore(redis_url)
    return InMemoryCacheStore()
