"""Inventory and the low-stock alert."""
from __future__ import annotations

import pytest

from nailstudio.models import Notification, Product


@pytest.fixture
def product_id(client):
    response = client.post(
        "/products",
        json={
            "name": "Esmalte Vermelho",
            "category": "Esmaltes",
            "stock": 10,
            "low_stock_threshold": 3,
            "unit": "un",
            "cost_price": "8,50",
            "selling_price": "15,00",
        },
    )
    assert response.status_code == 201
    return response.get_json()["product"]["id"]


def test_create_product(client, product_id):
    product = client.get("/products").get_json()["products"][0]

    assert product["cost_price"] == "8.50"
    assert product["is_low_stock"] is False


def test_create_product_validation(client):
    response = client.post("/products", json={"name": "", "stock": -1})

    assert response.status_code == 400
    assert {"name", "category", "stock"} <= set(response.get_json()["fields"])


def test_stock_crossing_threshold_raises_one_alert(client, product_id):
    response = client.put(f"/products/{product_id}", json={"stock": 2})
    data = response.get_json()

    assert response.status_code == 200
    assert data["notification"]["title"] == "Estoque Baixo"
    assert data["notification"]["type"] == "alert"
    assert data["notification"]["link_to"] == "/estoque"

    client.put(f"/products/{product_id}", json={"stock": 1})
    assert Notification.query.count() == 1


def test_restock_then_drop_alerts_again(client, product_id):
    client.put(f"/products/{product_id}", json={"stock": 3})
    client.put(f"/products/{product_id}", json={"stock": 20, "last_restock_date": "2026-02-01"})
    client.put(f"/products/{product_id}", json={"stock": 0})

    assert Notification.query.count() == 2


def test_low_stock_filter_and_delete(client, product_id):
    client.put(f"/products/{product_id}", json={"stock": 1})

    low = client.get("/products?low_stock=true").get_json()["products"]
    assert [p["id"] for p in low] == [product_id]

    assert client.delete(f"/products/{product_id}").status_code == 200
    assert Product.query.count() == 0
    assert client.delete(f"/products/{product_id}").status_code == 404
