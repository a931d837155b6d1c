"""
Integration tests for the Edge Proxy request flow.
"""

import pytest
from fastapi.testclient import TestClient

from shared.test_helpers import (
    RecordingUpstream,
    TEST_ALLOWED_ORIGIN,
    TEST_PURGE_SECRET,
    TEST_UPSTREAM_KEY,
    TEST_UPSTREAM_URL,
    make_config,
)
from service_proxy.app.adapters.upstream_client import UpstreamClient
from service_proxy.app.caching.store import InMemoryCacheStore
from service_proxy.app.main import ProxyService


class TestProxyFlow:
    """Integration tests for cache, CORS and purge across requests."""

    @pytest.fixture
    def upstream(self):
        return RecordingUpstream(payload=[{"id": 1, "name": "Acme GmbH"}])

    @pytest.fixture
    def store(self):
        return InMemoryCacheStore()

    @pytest.fixture
    def service(self, upstream, store):
        client = UpstreamClient(TEST_UPSTREAM_URL, TEST_UPSTREAM_KEY, transport=upstream.transport())
        return ProxyService(make_config(), store=store, upstream=client)

    @pytest.fixture
    def client(self, service):
        with TestClient(service.app) as test_client:
            yield test_client

    def test_master_data_is_cached_after_first_read(self, client, upstream, service, store):
        first = client.get("/rest/v1/companies", headers={"Origin": TEST_ALLOWED_ORIGIN})

        assert first.status_code == 200
        assert first.headers["x-cache-status"] == "MISS"
        assert first.headers["cache-control"] == "public, max-age=3600"
        assert upstream.calls == 1

        second = client.get("/rest/v1/companies", headers={"Origin": TEST_ALLOWED_ORIGIN})

        assert second.status_code == 200
        assert second.headers["x-cache-status"] == "HIT"
        assert second.headers["cache-control"] == "public, max-age=3600"
        assert second.headers["access-control-allow-origin"] == TEST_ALLOWED_ORIGIN
        assert second.headers["content-range"] == "0-0/1"
        assert second.json() == first.json()
        assert len(store) == 1
        assert upstream.calls == 1

        assert service.metrics.sample("edge_cache_lookups_total", result="miss") == 1.0
        assert service.metrics.sample("edge_cache_lookups_total", result="hit") == 1.0
        assert service.metrics.sample("edge_cache_writes_total", outcome="stored") == 1.0

    def test_cached_entry_is_shared_across_origins(self, client, upstream):
        client.get("/rest/v1/companies", headers={"Origin": TEST_ALLOWED_ORIGIN})

        response = client.get("/rest/v1/companies", headers={"User-Agent": "Dart/3.2 (dart:io)"})

        assert response.headers["x-cache-status"] == "HIT"
        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers
        assert upstream.calls == 1

    def test_different_query_is_a_separate_entry(self, client, upstream):
        client.get("/rest/v1/tax_rates?select=*")

        response = client.get("/rest/v1/tax_rates?select=id")

        assert response.headers["x-cache-status"] == "MISS"
        assert upstream.calls == 2

    def test_transactional_data_is_never_cached(self, client, upstream, store):
        for _ in range(2):
            response = client.get("/rest/v1/sales_invoices", headers={"Origin": TEST_ALLOWED_ORIGIN})

            assert response.status_code == 200
            assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
            assert "x-cache-status" not in response.headers

        assert upstream.calls == 2
        assert len(store) == 0

    @pytest.mark.parametrize("path", ["/rest/v1/rpc/post_invoice", "/rest/v1/audit_log", "/storage/v1/object/a.png"])
    def test_unclassified_reads_are_not_cached(self, client, upstream, store, path):
        client.get(path)
        response = client.get(path)

        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert upstream.calls == 2
        assert len(store) == 0

    def test_purge_forces_next_read_upstream(self, client, upstream):
        client.get("/rest/v1/companies")
        client.get("/rest/v1/companies")
        assert upstream.calls == 1

        purge = client.request("PURGE", "/rest/v1/companies", headers={"X-Purge-Secret": TEST_PURGE_SECRET})
        assert purge.json()["purged"] is True

        response = client.get("/rest/v1/companies")

        assert response.headers["x-cache-status"] == "MISS"
        assert upstream.calls == 2

    @pytest.mark.parametrize("path", ["/rest/v1/companies", "/auth/v1/token", "/storage/v1/bucket", "/nowhere"])
    def test_preflight_echoes_requested_headers(self, client, upstream, path):
        requested = "authorization, x-client-info, apikey, content-type"

        response = client.options(
            path,
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": requested,
            },
        )

        assert response.status_code == 204
        assert response.headers["access-control-allow-headers"] == requested
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert upstream.calls == 0

    def test_preflight_without_requested_headers_uses_defaults(self, client):
        response = client.options("/rest/v1/companies", headers={"Origin": TEST_ALLOWED_ORIGIN})

        assert response.status_code == 204
        assert "apikey" in response.headers["access-control-allow-headers"].lower()
