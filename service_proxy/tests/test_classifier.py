"""
Unit tests for cache classification.
"""

import pytest

from service_proxy.app.caching.classifier import (
    CacheClassifier,
    CacheDisposition,
    ResourceClass,
    resource_identifier,
)


class TestCacheClassifier:
    """Test cases for CacheClassifier."""

    @pytest.fixture
    def classifier(self):
        return CacheClassifier(
            ["companies", "tax_rates", "warehouses"],
            ["sales_invoices", "payments"],
        )

    @pytest.mark.parametrize("path", [
        "/rest/v1/companies",
        "/rest/v1/tax_rates",
        "/rest/v1/warehouses/",
    ])
    def test_master_data_get_is_cacheable_for_an_hour(self, classifier, path):
        disposition = classifier.classify(path, "GET")

        assert disposition == CacheDisposition(True, 3600, ResourceClass.MASTER_DATA)

    @pytest.mark.parametrize("method", ["POST", "PATCH", "PUT", "DELETE", "HEAD", "OPTIONS", "PURGE"])
    def test_only_get_can_be_cached(self, classifier, method):
        disposition = classifier.classify("/rest/v1/companies", method)

        assert disposition.cacheable is False
        assert disposition.resource_class is ResourceClass.MASTER_DATA

    @pytest.mark.parametrize("path,expected", [
        ("/rest/v1/sales_invoices", ResourceClass.TRANSACTIONAL),
        ("/rest/v1/rpc/post_journal", ResourceClass.TRANSACTIONAL),
        ("/rest/v1/unknown_table", ResourceClass.UNCLASSIFIED),
        ("/rest/v1/companies_archive", ResourceClass.UNCLASSIFIED),
        ("/auth/v1/user", ResourceClass.UNCLASSIFIED),
        ("/storage/v1/object/companies", ResourceClass.UNCLASSIFIED),
    ])
    def test_everything_but_master_data_is_no_store(self, classifier, path, expected):
        disposition = classifier.classify(path, "GET")

        assert disposition.cacheable is False
        assert disposition.ttl_seconds == 0
        assert disposition.resource_class is expected

    def test_classify_is_deterministic(self, classifier):
        first = classifier.classify("/rest/v1/companies", "get")

        for _ in range(3):
            assert classifier.classify("/rest/v1/companies", "get") == first

    def test_overlapping_sets_resolve_to_transactional(self):
        classifier = CacheClassifier(["customers", "companies"], ["customers"])

        assert classifier.resource_class("/rest/v1/customers") is ResourceClass.TRANSACTIONAL
        assert classifier.classify("/rest/v1/customers", "GET").cacheable is False
        assert classifier.is_purgeable("/rest/v1/customers") is False

    def test_custom_ttl(self):
        classifier = CacheClassifier(["companies"], master_data_ttl=120)

        assert classifier.classify("/rest/v1/companies", "GET").ttl_seconds == 120

    def test_rpc_named_like_master_data_is_not_cacheable(self):
        classifier = CacheClassifier(["rpc", "companies"])

        assert classifier.classify("/rest/v1/rpc/companies", "GET").cacheable is False

    @pytest.mark.parametrize("path,purgeable", [
        ("/rest/v1/companies", True),
        ("/rest/v1/tax_rates/", True),
        ("/rest/v1/sales_invoices", False),
        ("/rest/v1/rpc/refresh", False),
        ("/auth/v1/token", False),
        ("/", False),
    ])
    def test_is_purgeable(self, classifier, path, purgeable):
        assert classifier.is_purgeable(path) is purgeable


@pytest.mark.parametrize("path,identifier", [
    ("/rest/v1/companies", "companies"),
    ("/rest/v1/companies/extra", "companies"),
    ("/rest/v1/rpc/do_thing", "rpc"),
    ("/rest/v1/", None),
    ("/rest/v2/companies", None),
    ("/storage/v1/bucket", None),
])
def test_resource_identifier(path, identifier):
    assert resource_identifier(path) == identifier
