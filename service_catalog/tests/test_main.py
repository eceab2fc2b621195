"""
API tests for the catalog service.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app.adapters.commerce_client import CommerceClient
from service_catalog.app.main import create_app
from shared.config import get_config


PRODUCTS = [
    {
        "id": 11,
        "name": "Shooters Hoodie",
        "regular_price": "185.00",
        "sale_price": "150.00",
        "sku": "TS11-L",
        "categories": [{"name": "Hoodies"}],
    },
    {
        "id": 12,
        "name": "Irongate Jacket",
        "regular_price": "260.00",
        "sku": "TS12",
        "categories": [{"name": "Jackets"}],
    },
    {
        "id": 13,
        "name": "Decoded Hoodie",
        "regular_price": "170.00",
        "sku": "TS13",
        "categories": [{"name": "Hoodies"}],
    },
]


class Backend:
    """Single-page commerce backend that can be switched to failing."""

    def __init__(self):
        self.requests = []
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="unavailable")
        return httpx.Response(
            200,
            json=PRODUCTS,
            headers={"X-WP-Total": str(len(PRODUCTS)), "X-WP-TotalPages": "1"},
        )


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(backend, clock):
    """Create test client backed by a mock commerce backend."""
    config = get_config("catalog", 8020, snapshot_backend="none")
    commerce_client = CommerceClient(
        "http://shop.test/wp",
        "ck_test",
        "cs_test",
        transport=httpx.MockTransport(backend),
    )
    app = create_app(config, commerce_client=commerce_client, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


class TestCatalogService:
    """Test cases for the catalog API."""

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "catalog"
        assert data["message"] == "Storefront - Catalog Service"

    def test_list_products(self, client, backend):
        response = client.get("/api/products")

        assert response.status_code == 200
        assert [p["slug"] for p in response.json()] == ["shooters-hoodie", "irongate-jacket", "decoded-hoodie"]
        assert response.headers["X-Catalog-Stale"] == "false"
        assert "X-Request-ID" in response.headers

        client.get("/api/products")
        assert len(backend.requests) == 1

    def test_filter_by_category(self, client):
        response = client.get("/api/products", params={"category": "hoodies"})

        assert [p["id"] for p in response.json()] == [11, 13]

    def test_search(self, client):
        response = client.get("/api/products", params={"q": "JACKET"})

        assert [p["id"] for p in response.json()] == [12]

    def test_filter_by_brand(self, client):
        assert len(client.get("/api/products", params={"brand": "TRAPSTAR"}).json()) == 3
        assert client.get("/api/products", params={"brand": "hellstar"}).json() == []

    def test_blank_search_matches_nothing(self, client):
        response = client.get("/api/products", params={"q": "  "})

        assert response.status_code == 200
        assert response.json() == []

    def test_pagination_envelope(self, client):
        response = client.get("/api/products", params={"page": 2, "per_page": 2})

        assert response.status_code == 200
        data = response.json()
        assert [p["id"] for p in data["products"]] == [13]
        assert data["pagination"]["total_products"] == 3
        assert data["pagination"]["total_pages"] == 2
        assert data["pagination"]["has_prev_page"] is True

    def test_invalid_page_rejected(self, client):
        response = client.get("/api/products", params={"page": 0})

        assert response.status_code == 422

    def test_get_product_by_slug(self, client):
        response = client.get("/api/products/irongate-jacket")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == 12
        assert data["category"] == "jackets"
        assert data["price"] == 260.0

    def test_unknown_slug_returns_404(self, client):
        response = client.get("/api/products/no-such-product")

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NOT_FOUND"
        assert data["details"] == {"slug": "no-such-product"}
        assert data["request_id"] == response.headers["X-Request-ID"]

    def test_cold_upstream_failure_returns_503(self, client, backend):
        backend.status_code = 503

        response = client.get("/api/products")

        assert response.status_code == 503
        assert response.json()["code"] == "UPSTREAM_UNAVAILABLE"

    def test_stale_snapshot_served_on_upstream_failure(self, client, backend, clock):
        client.get("/api/products")
        clock.now += 2 * 3600
        backend.status_code = 502

        response = client.get("/api/products")

        assert response.status_code == 200
        assert len(response.json()) == 3
        assert response.headers["X-Catalog-Stale"] == "true"
        assert len(backend.requests) == 2

    def test_webhook_invalidates_and_warms(self, client, backend):
        client.get("/api/products")

        response = client.post(
            "/api/webhooks/catalog",
            json={"action": "updated", "resource": "product", "id": 12},
            headers={"X-WC-Webhook-Topic": "product.updated"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["cache_cleared"] is True
        assert data["cache_warmed"] is True
        assert data["products"] == 3
        assert len(backend.requests) == 2

        client.get("/api/products")
        assert len(backend.requests) == 2

    def test_webhook_accepts_non_json_body(self, client, backend):
        response = client.post("/api/webhooks/catalog", content=b"webhook_id=5")

        assert response.status_code == 200
        assert response.json()["cache_warmed"] is True

    def test_webhook_reports_failed_warm(self, client, backend):
        client.get("/api/products")
        backend.status_code = 503

        response = client.post("/api/webhooks/catalog", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["cache_cleared"] is True
        assert data["cache_warmed"] is False
        assert data["products"] is None

    def test_webhook_ping(self, client):
        response = client.get("/api/webhooks/catalog")

        assert response.status_code == 200
        assert response.json()["status"] == "active"

    def test_catalog_status(self, client):
        client.get("/api/products")

        response = client.get("/api/catalog/status")

        assert response.status_code == 200
        data = response.json()
        assert data["cache"]["items"] == 3
        assert data["cache"]["misses"] == 1
        assert data["cache"]["fresh"] is True
        assert data["commerce_backend"]["state"] == "closed"

    def test_health_reports_cache_state(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["dependencies"]["catalog_cache"] == "empty"

        client.get("/api/products")

        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"catalog_cache": "ok", "commerce_backend": "closed"}

    def test_metrics_endpoint(self, client):
        client.get("/api/products")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "catalog_cache_requests_total" in response.text
        assert "catalog_snapshot_items 3.0" in response.text
