"""
Shared metrics configuration for the Edge Proxy.
"""

from typing import Any, Dict, Optional, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, Info, generate_latest


class MetricsCollector:
    """Centralized metrics collector for the proxy.

    Each collector owns its registry so several app instances (tests, workers
    sharing a process) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None, *, version: str = "1.0.0"):
        self.service_name = service_name
        self.version = version
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": self.version
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method"],
            registry=self.registry
        )

        self._setup_proxy_metrics()

    def _setup_proxy_metrics(self):
        """Set up cache, CORS and upstream metrics."""
        self._metrics["edge_cache_lookups_total"] = Counter(
            "edge_cache_lookups_total",
            "Response cache lookups",
            ["result"],
            registry=self.registry
        )

        self._metrics["edge_cache_writes_total"] = Counter(
            "edge_cache_writes_total",
            "Background response cache writes",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["edge_cache_purges_total"] = Counter(
            "edge_cache_purges_total",
            "Cache purge requests",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["edge_cors_rejections_total"] = Counter(
            "edge_cors_rejections_total",
            "Requests rejected by the origin policy",
            registry=self.registry
        )

        self._metrics["edge_upstream_requests_total"] = Counter(
            "edge_upstream_requests_total",
            "Requests forwarded to the upstream API",
            ["method", "status_class"],
            registry=self.registry
        )

    def record_http_request(self, method: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(method=method).observe(duration)

    def record_upstream_response(self, method: str, status_code: Optional[int]):
        """Record an upstream round trip; ``None`` means the call failed."""
        status_class = f"{status_code // 100}xx" if status_code else "error"
        self.increment_counter("edge_upstream_requests_total", method=method, status_class=status_class)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        if labels:
            metric.labels(**labels).inc()
        else:
            metric.inc()

    def sample(self, metric_name: str, **labels) -> float:
        """Current value of a counter sample, 0.0 when never incremented."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0

    def exposition(self) -> Tuple[bytes, str]:
        """Prometheus text exposition for this collector's registry."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
