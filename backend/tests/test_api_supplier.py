from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from catalog_sync.connectors.supplier_connector import get_supplier_connector
from catalog_sync.exceptions import RateLimitError, SupplierError
from catalog_sync.main import app


@pytest.fixture
def fake_connector():
    connector = MagicMock()
    connector.token_status.return_value = {
        "has_access_token": True,
        "access_expires_at": "2025-06-19T10:00:00+00:00",
        "access_seconds_remaining": 3600,
        "has_refresh_token": False,
        "refresh_expires_at": None,
        "last_refreshed_at": None,
    }
    connector.search_products = AsyncMock()
    app.dependency_overrides[get_supplier_connector] = lambda: connector
    yield connector
    app.dependency_overrides.pop(get_supplier_connector, None)


def test_status_has_no_token(client: TestClient, fake_connector):
    response = client.get("/api/v1/supplier/status")

    assert response.status_code == 200
    data = response.json()
    assert data["has_access_token"] is True
    assert data["access_seconds_remaining"] == 3600
    assert "access_token" not in data


def test_product_search(client: TestClient, fake_connector):
    fake_connector.search_products.return_value = {
        "page": 1, "page_size": 20, "total": 1,
        "products": [{"product_id": "P1", "name": "Bear", "sell_price": 4.5, "image_url": None}],
    }

    response = client.get("/api/v1/supplier/products", params={"keyword": "bear"})

    assert response.status_code == 200
    assert response.json()["products"][0]["product_id"] == "P1"
    fake_connector.search_products.assert_awaited_once_with(keyword="bear", page=1, page_size=20)


def test_product_search_rate_limited(client: TestClient, fake_connector):
    fake_connector.search_products.side_effect = RateLimitError(429, None)

    response = client.get("/api/v1/supplier/products")

    assert response.status_code == 429


def test_product_search_supplier_failure(client: TestClient, fake_connector):
    fake_connector.search_products.side_effect = SupplierError(500, "down")

    response = client.get("/api/v1/supplier/products")

    assert response.status_code == 502
