"""
Base service class for the Edge Proxy.
"""

import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.config import ProxyConfig, get_config
from shared.errors import EdgeProxyException
from shared.logging import clear_context, configure_logging, get_logger, get_request_id, set_request_id
from shared.metrics import MetricsCollector


REQUEST_ID_HEADER = "X-Request-ID"


class BaseService:
    """Base service class with common functionality."""

    def __init__(
        self,
        service_name: str,
        config: Optional[ProxyConfig] = None,
        *,
        metrics: Optional[MetricsCollector] = None,
        version: str = "1.0.0",
    ):
        self.service_name = service_name
        self.version = version
        self.config = config or get_config()
        self.metrics = metrics if metrics is not None else MetricsCollector(service_name, version=version)

        configure_logging(service_name, self.config.log_level)
        self.logger = get_logger(f"{service_name}.service")

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_exception_handlers()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            version=self.version,
            # Every path belongs to the proxied API.
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )

    def _setup_middleware(self):
        """Set up request correlation, timing and logging middleware."""

        @self.app.middleware("http")
        async def add_request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            start_time = time.time()
            try:
                response = await call_next(request)

                duration = time.time() - start_time
                self.metrics.record_http_request(
                    method=request.method,
                    status_code=response.status_code,
                    duration=duration
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )

                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                clear_context()

    def _setup_exception_handlers(self):
        """Render service exceptions as JSON, keeping their response headers."""

        @self.app.exception_handler(EdgeProxyException)
        async def edge_proxy_exception_handler(request: Request, exc: EdgeProxyException):
            log = self.logger.error if exc.status_code >= 500 else self.logger.warning
            log(
                "Request failed",
                code=exc.code,
                message=exc.message,
                status_code=exc.status_code,
                path=request.url.path,
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_body(get_request_id()),
                headers=dict(exc.headers),
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    def _setup_routes(self):
        """Set up routes. Override in subclasses."""

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
