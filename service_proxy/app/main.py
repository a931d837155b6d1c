"""
Edge Proxy service: CORS-aware caching reverse proxy for one upstream API.
"""

from typing import Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.config import ProxyConfig
from shared.metrics import MetricsCollector

from service_proxy import __version__

from .adapters.upstream_client import UpstreamClient
from .caching.cache_manager import ResponseCacheManager
from .caching.classifier import CacheClassifier
from .caching.store import CacheStore, create_cache_store
from .domain.gateway import ProxyGateway
from .domain.origin_policy import OriginPolicy


PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "PURGE"]


class ProxyService(BaseService):
    """Edge proxy service implementation."""

    def __init__(
        self,
        config: Optional[ProxyConfig] = None,
        *,
        store: Optional[CacheStore] = None,
        upstream: Optional[UpstreamClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__("edge_proxy", config, metrics=metrics, version=__version__)

        self.origin_policy = OriginPolicy(
            self.config.allowed_origin_list,
            self.config.mobile_user_agent_markers,
            log_rejections=not self.config.is_production,
        )
        self.classifier = CacheClassifier(
            self.config.master_data_set,
            self.config.transactional_set,
            master_data_ttl=self.config.master_data_ttl,
        )
        self.cache_manager = ResponseCacheManager(
            store if store is not None else create_cache_store(self.config.cache_backend, self.config.redis_url),
            metrics=self.metrics,
        )
        if upstream is None and self.config.upstream_url and self.config.upstream_key:
            upstream = UpstreamClient(
                self.config.upstream_url,
                self.config.upstream_key,
                timeout=self.config.upstream_timeout,
            )
        self.upstream_client = upstream

        self.gateway = ProxyGateway(
            self.config,
            self.origin_policy,
            self.classifier,
            self.cache_manager,
            self.upstream_client,
            metrics=self.metrics,
            service_name="edge-proxy",
            version=__version__,
        )

        missing = self.config.missing_required()
        if missing:
            self.logger.error("Required configuration missing; every request will fail", missing=missing)

        @self.app.on_event("shutdown")
        async def _shutdown():
            if self.upstream_client:
                await self.upstream_client.close()
            await self.cache_manager.close()

        # Expose service instance via app state for introspection/testing
        self.app.state.proxy_service = self

    def _setup_routes(self):
        """Route every path and method through the gateway."""

        @self.app.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
        async def proxy(request: Request, full_path: str):
            return await self.gateway.handle(request)


def create_app():
    """Create FastAPI application."""
    service = ProxyService()
    return service.app


def main():
    service = ProxyService()
    service.run()


if __name__ == "__main__":
    main()
