"""
Unit tests for the catalog fetch facility and its freshness policies.
"""
import asyncio
import pytest
import httpx
from fastapi import HTTPException
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from catalog_client import CatalogClient, FreshnessPolicy
from models import Product, products_db

CATALOG_PAYLOAD = [p.model_dump() for p in products_db]


class CountingCatalog:
    """Fake catalog endpoint recording every request it serves."""

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = CATALOG_PAYLOAD if payload is None else payload
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def fake_catalog():
    return CountingCatalog()


@pytest.fixture
def clock():
    """Controllable clock for the revalidation cache."""
    return [100.0]


@pytest.fixture
def client(fake_catalog, clock):
    catalog = CatalogClient("http://catalog.test/", transport=httpx.MockTransport(fake_catalog))
    catalog.clock = lambda: clock[0]
    return catalog


def fetch(client, policy, trace_id=None):
    return asyncio.run(client.fetch_products(policy, trace_id))


class TestFreshnessPolicy:
    """Tests for the caching directives."""

    def test_no_store(self):
        policy = FreshnessPolicy.no_store()
        assert policy.revalidate is None
        assert policy.cache_control == "no-store"

    def test_revalidate_window(self):
        policy = FreshnessPolicy.every(10)
        assert policy.revalidate == 10
        assert policy.cache_control == "s-maxage=10, stale-while-revalidate"


class TestNoStore:
    """Tests for fetch-on-every-request."""

    def test_every_call_hits_the_catalog(self, client, fake_catalog):
        """Test that no-store never serves cached data."""
        for _ in range(3):
            products = fetch(client, FreshnessPolicy.no_store())
            assert [p.name for p in products] == ["Laptop", "Phone", "Tablet"]
        assert len(fake_catalog.requests) == 3

    def test_requests_products_path(self, client, fake_catalog):
        fetch(client, FreshnessPolicy.no_store())
        assert str(fake_catalog.requests[0].url) == "http://catalog.test/api/products"

    def test_trace_id_is_propagated(self, client, fake_catalog):
        """Test that the incoming trace id is forwarded to the catalog."""
        fetch(client, FreshnessPolicy.no_store(), trace_id="trace-42")
        assert fake_catalog.requests[0].headers["X-Trace-ID"] == "trace-42"

    def test_no_trace_header_without_trace_id(self, client, fake_catalog):
        fetch(client, FreshnessPolicy.no_store())
        assert "X-Trace-ID" not in fake_catalog.requests[0].headers


class TestRevalidate:
    """Tests for time-bounded revalidation."""

    def test_serves_cached_data_inside_window(self, client, fake_catalog, clock):
        """Test that a second call within the window does not refetch."""
        policy = FreshnessPolicy.every(10)
        first = fetch(client, policy)
        clock[0] += 9.9
        second = fetch(client, policy)
        assert first == second
        assert len(fake_catalog.requests) == 1

    def test_refetches_once_window_elapsed(self, client, fake_catalog, clock):
        """Test that staleness is bounded by the window."""
        policy = FreshnessPolicy.every(10)
        fetch(client, policy)
        clock[0] += 10
        fetch(client, policy)
        assert len(fake_catalog.requests) == 2
        clock[0] += 5
        fetch(client, policy)
        assert len(fake_catalog.requests) == 2

    def test_revalidation_picks_up_new_data(self, client, fake_catalog, clock):
        """Test that a refetch replaces the cached payload."""
        policy = FreshnessPolicy.every(10)
        fetch(client, policy)
        fake_catalog.payload = [{"id": 1, "name": "Laptop", "price": 899}]
        clock[0] += 3
        assert fetch(client, policy)[0].price == 999
        clock[0] += 10
        assert fetch(client, policy)[0].price == 899

    def test_no_store_bypasses_cache(self, client, fake_catalog, clock):
        """Test that no-store calls neither read nor fill the cache."""
        fetch(client, FreshnessPolicy.no_store())
        fetch(client, FreshnessPolicy.every(10))
        assert len(fake_catalog.requests) == 2

    def test_clear_drops_cached_entries(self, client, fake_catalog, clock):
        policy = FreshnessPolicy.every(10)
        fetch(client, policy)
        client.clear()
        fetch(client, policy)
        assert len(fake_catalog.requests) == 2


class TestCatalogFailures:
    """Tests for catalog failures surfacing as 503."""

    def test_network_error_raises_503(self):
        """Test that an unreachable catalog fails the page render."""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = CatalogClient("http://catalog.test", transport=httpx.MockTransport(refuse))
        with pytest.raises(HTTPException) as exc_info:
            fetch(client, FreshnessPolicy.no_store())
        assert exc_info.value.status_code == 503
        assert exc_info.value.detail == "Catalog service unavailable"

    def test_error_status_raises_503(self):
        client = CatalogClient("http://catalog.test", transport=httpx.MockTransport(CountingCatalog(status_code=500)))
        with pytest.raises(HTTPException) as exc_info:
            fetch(client, FreshnessPolicy.every(10))
        assert exc_info.value.status_code == 503

    def test_failed_revalidation_is_not_cached(self, fake_catalog):
        """Test that a failure does not poison the revalidation cache."""
        fake_catalog.status_code = 500
        client = CatalogClient("http://catalog.test", transport=httpx.MockTransport(fake_catalog))
        with pytest.raises(HTTPException):
            fetch(client, FreshnessPolicy.every(10))
        fake_catalog.status_code = 200
        assert len(fetch(client, FreshnessPolicy.every(10))) == 3

    def test_cached_list_is_not_shared_between_callers(self, client, fake_catalog, clock):
        """Test that mutating a returned list does not alter later cache hits."""
        policy = FreshnessPolicy.every(10)
        first = fetch(client, policy)
        first.clear()
        second = fetch(client, policy)
        second.append(Product(id=9, name="Extra", price=1))
        assert [p.name for p in fetch(client, policy)] == ["Laptop", "Phone", "Tablet"]
        assert len(fake_catalog.requests) == 1
