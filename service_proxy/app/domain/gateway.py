"""
Request routing for the Edge Proxy.
"""

import hmac
from datetime import datetime, timezone
from typing import Optional, TYPE_CHECKING

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from shared.config import ProxyConfig
from shared.errors import (
    ConfigurationError,
    OriginRejectedError,
    PurgeNotAllowedError,
    PurgeUnauthorizedError,
    RouteNotFoundError,
    UpstreamUnavailableError,
)
from shared.logging import get_logger

from ..adapters.upstream_client import BODYLESS_METHODS, UpstreamClient
from ..caching.cache_manager import ResponseCacheManager, make_cache_key
from ..caching.classifier import CacheClassifier
from ..caching.store import CachedEntry
from .headers import (
    CACHE_CONTROL_CACHEABLE,
    CACHE_STATUS_HEADER,
    HeaderList,
    build_response,
    cache_headers,
    merge_headers,
)
from .origin_policy import OriginPolicy

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


PROXIED_PREFIXES = ("/rest/", "/auth/", "/storage/")
HEALTH_PATHS = frozenset({"/", "/health"})
INFO_PATH = "/info"
METRICS_PATH = "/metrics"
PURGE_SECRET_HEADER = "X-Purge-Secret"


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ProxyGateway:
    """Runs every inbound request through the proxy's decision steps.

    Order: configuration check, origin gate, preflight, static routes, purge,
    proxied prefixes, then 404. Failures are raised as ``EdgeProxyException``
    subclasses carrying the CORS headers the response must keep.
    """

    def __init__(
        self,
        config: ProxyConfig,
        origin_policy: OriginPolicy,
        classifier: CacheClassifier,
        cache: ResponseCacheManager,
        upstream: Optional[UpstreamClient],
        *,
        metrics: Optional["MetricsCollector"] = None,
        service_name: str = "edge-proxy",
        version: str = "1.0.0",
    ):
        self.config = config
        self.origin_policy = origin_policy
        self.classifier = classifier
        self.cache = cache
        self.upstream = upstream
        self.metrics = metrics
        self.service_name = service_name
        self.version = version
        self.logger = get_logger("edge_proxy.gateway")

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    async def handle(self, request: Request) -> Response:
        """Produce the response for one inbound request."""
        self._check_config()

        method = request.method.upper()
        path = request.url.path

        decision = self.origin_policy.evaluate(
            request.headers.get("origin"),
            request.headers.get("user-agent"),
        )
        if decision is None:
            self._count("edge_cors_rejections_total")
            raise OriginRejectedError()
        cors = decision.headers()

        if method == "OPTIONS":
            headers = self.origin_policy.preflight_headers(
                decision,
                request.headers.get("access-control-request-headers"),
            )
            return build_response(204, headers)

        if path in HEALTH_PATHS or path in (INFO_PATH, METRICS_PATH):
            return await self._static_route(path, cors)

        if method == "PURGE":
            return await self._purge(request, cors)

        if path.startswith(PROXIED_PREFIXES):
            return await self._proxy(request, method, cors)

        raise RouteNotFoundError(path, headers=cors)

    def _check_config(self) -> None:
        missing = self.config.missing_required()
        if missing or self.upstream is None:
            self.logger.error("Required configuration missing", missing=missing)
            raise ConfigurationError(
                "Server configuration error: Required environment variables are missing."
            )

    async def _static_route(self, path: str, cors: HeaderList) -> Response:
        if path == METRICS_PATH:
            if not self.metrics:
                raise RouteNotFoundError(path, headers=cors)
            body, content_type = self.metrics.exposition()
            return build_response(200, merge_headers(cors, [("Content-Type", content_type)]), body)

        if path == INFO_PATH:
            payload = {
                "service": self.service_name,
                "version": self.version,
                "environment": self.config.environment,
                "proxied_prefixes": list(PROXIED_PREFIXES),
                "cache_backend": self.cache.backend,
                "cache": await self.cache.check_health(),
                "timestamp": utc_timestamp(),
            }
        else:
            payload = {"status": "ok", "timestamp": utc_timestamp()}
        return JSONResponse(payload, status_code=200, headers=dict(cors))

    async def _purge(self, request: Request, cors: HeaderList) -> Response:
        """Remove one master data entry from the response cache."""
        path = request.url.path
        secret = request.headers.get(PURGE_SECRET_HEADER) or ""
        expected = self.config.purge_secret or ""
        if not secret or not hmac.compare_digest(secret.encode("utf-8"), expected.encode("utf-8")):
            self._count("edge_cache_purges_total", outcome="unauthorized")
            raise PurgeUnauthorizedError(headers=cors)

        if not self.classifier.is_purgeable(path):
            self._count("edge_cache_purges_total", outcome="not_allowed")
            raise PurgeNotAllowedError(headers=cors)

        # Key matches the GET that cached the entry; the secret header is not part of it.
        key = make_cache_key(path, request.url.query, request.headers)
        result = await self.cache.purge(key)

        payload = {"purged": result.purged, "url": str(request.url), "timestamp": utc_timestamp()}
        if not result.store_available:
            payload["error"] = "Cache store unavailable"
        self.logger.info("Cache purge", path=path, purged=result.purged, store_available=result.store_available)
        return JSONResponse(payload, status_code=200, headers=dict(cors))

    async def _proxy(self, request: Request, method: str, cors: HeaderList) -> Response:
        """Serve from cache or forward upstream, classifying successful reads."""
        path = request.url.path
        query = request.url.query

        key = None
        if method == "GET":
            key = make_cache_key(path, query, request.headers)
            entry = await self.cache.lookup(key)
            if entry is not None:
                self.logger.debug("Cache hit", path=path)
                headers = merge_headers(entry.headers, cors + ((CACHE_STATUS_HEADER, "HIT"),))
                return build_response(entry.status_code, headers, entry.body)

        body = None if method in BODYLESS_METHODS else await request.body()
        try:
            upstream = await self.upstream.forward(method, path, query, request.headers, body)
        except UpstreamUnavailableError as exc:
            if self.metrics:
                self.metrics.record_upstream_response(method, None)
            exc.headers = cors
            raise
        if self.metrics:
            self.metrics.record_upstream_response(method, upstream.status_code)

        headers = merge_headers(upstream.headers, cors)
        background = None

        if method == "GET" and upstream.ok:
            disposition = self.classifier.classify(path, method)
            headers = merge_headers(headers, cache_headers(disposition.cacheable, disposition.ttl_seconds))
            if disposition.cacheable:
                stored_headers = merge_headers(
                    upstream.headers,
                    [("Cache-Control", CACHE_CONTROL_CACHEABLE.format(ttl=disposition.ttl_seconds))],
                )
                entry = CachedEntry(upstream.status_code, stored_headers, upstream.body)
                # Runs after the response is sent; the caller never waits on it.
                background = BackgroundTask(self.cache.store_response, key, entry, disposition.ttl_seconds)
                self.logger.debug("Cache miss; storing response", path=path, ttl=disposition.ttl_seconds)

        return build_response(
            upstream.status_code,
            headers,
            upstream.body,
            background=background,
            keep_content_length=method == "HEAD",
        )
