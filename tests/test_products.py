from datetime import datetime, timedelta

import pytest

from retail_relay.errors import NotFound, ValidationError
from retail_relay.models.product import Product
from retail_relay.services import products as product_service

CATALOG = [
    ("Wireless Headphones", "Noise cancelling headphones", "Electronics"),
    ("Smart Watch", "Feature-rich smartwatch with health monitoring", "Electronics"),
    ("Running Shoes", "Comfortable shoes, pairs well with a sports watch", "Footwear"),
    ("Backpack", "Durable backpack with multiple compartments", "Accessories"),
    ("Phone Charger", "Fast USB-C charger, 100% recycled plastic", "Electronics"),
]


def _product_data(name="Backpack", description="Durable", category="Accessories", **extra):
    data = {
        "name": name,
        "description": description,
        "price": 59.99,
        "category": category,
        "image": "https://example.com/image.jpg",
        "quantity": 10,
    }
    data.update(extra)
    return data


@pytest.fixture
def catalog(session):
    start = datetime(2024, 1, 1)
    products = []
    for offset, (name, description, category) in enumerate(CATALOG):
        products.append(
            product_service.create_product(
                session,
                _product_data(
                    name, description, category, created_at=start + timedelta(minutes=offset)
                ),
            )
        )
    return products


def test_list_is_newest_first(session, catalog):
    page = product_service.list_products(session)
    assert [p.name for p in page.items] == [name for name, _, _ in reversed(CATALOG)]
    assert page.total == 5
    assert page.limit == 10
    assert page.pages == 1


def test_category_is_exact_match(session, catalog):
    page = product_service.list_products(session, category="Electronics")
    assert page.total == 3
    assert {p.category for p in page.items} == {"Electronics"}
    assert product_service.list_products(session, category="electronics").total == 0


def test_category_and_search_combine(session, catalog):
    page = product_service.list_products(session, search="WATCH")
    assert {p.name for p in page.items} == {"Smart Watch", "Running Shoes"}

    page = product_service.list_products(session, category="Electronics", search="watch")
    assert [p.name for p in page.items] == ["Smart Watch"]


def test_search_wildcards_are_literal(session, catalog):
    assert [p.name for p in product_service.list_products(session, search="100%").items] == [
        "Phone Charger"
    ]
    assert product_service.list_products(session, search="_").total == 0


def test_pagination_covers_catalog_once(session, catalog):
    seen = []
    for page_number in (1, 2, 3):
        page = product_service.list_products(session, page=page_number, limit=2)
        assert page.total == 5
        assert page.pages == 3
        seen.extend(p.id for p in page.items)
    assert [len(seen[:2]), len(seen[2:4]), len(seen[4:])] == [2, 2, 1]
    assert sorted(seen) == sorted(p.id for p in catalog)
    assert product_service.list_products(session, page=4, limit=2).items == []


def test_ties_on_created_at_are_ordered_by_id(session):
    stamp = datetime(2024, 1, 1)
    for name in ("a", "b", "c"):
        product_service.create_product(session, _product_data(name, created_at=stamp))
    first = product_service.list_products(session, page=1, limit=2).items
    second = product_service.list_products(session, page=2, limit=2).items
    ids = [p.id for p in first + second]
    assert ids == sorted(ids, reverse=True)


@pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (-1, 5)])
def test_invalid_paging_is_rejected(session, page, limit):
    with pytest.raises(ValidationError):
        product_service.list_products(session, page=page, limit=limit)


@pytest.mark.parametrize("field, value", [("price", -1), ("quantity", -1), ("name", "  ")])
def test_create_rejects_invalid_fields(session, field, value):
    with pytest.raises(ValidationError):
        product_service.create_product(session, _product_data(**{field: value}))
    assert session.query(Product).count() == 0


def test_create_trims_name_and_category(session):
    product = product_service.create_product(
        session, _product_data(name="  Lamp ", category=" Home ")
    )
    assert product.name == "Lamp"
    assert product.category == "Home"
    assert product.in_stock is True


def test_partial_update_keeps_other_fields(session, catalog):
    target = catalog[0]
    updated = product_service.update_product(
        session, target.id, {"price": 10.0, "name": None, "in_stock": False}
    )
    assert updated.price == 10.0
    assert updated.in_stock is False
    assert updated.name == "Wireless Headphones"
    assert updated.quantity == 10


def test_update_unknown_product(session):
    with pytest.raises(NotFound):
        product_service.update_product(session, "missing", {"price": 1.0})


def test_delete_then_fetch_is_not_found(session, catalog):
    product_id = catalog[0].id
    product_service.delete_product(session, product_id)
    with pytest.raises(NotFound):
        product_service.get_product(session, product_id)
    with pytest.raises(NotFound):
        product_service.delete_product(session, product_id)


def test_list_products_endpoint(client, catalog):
    resp = client.get("/api/v1/products", params={"page": 2, "limit": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}
    assert len(body["data"]) == 2
    assert {"inStock", "createdAt", "updatedAt"} <= set(body["data"][0])


def test_list_products_endpoint_rejects_bad_limit(client):
    assert client.get("/api/v1/products", params={"limit": 0}).status_code == 400
    assert client.get("/api/v1/products", params={"limit": 1000}).status_code == 400


def test_get_product_endpoint(client, catalog):
    resp = client.get(f"/api/v1/products/{catalog[1].id}")
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Smart Watch"
    assert client.get("/api/v1/products/missing").status_code == 404


def test_admin_crud_endpoints(client, admin_headers):
    resp = client.post(
        "/api/v1/products",
        json=_product_data(name="Desk Lamp", inStock=False),
        headers=admin_headers,
    )
    assert resp.status_code == 201
    created = resp.json()["data"]
    assert created["inStock"] is False

    resp = client.put(
        f"/api/v1/products/{created['id']}",
        json={"quantity": 3},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["quantity"] == 3
    assert resp.json()["data"]["name"] == "Desk Lamp"

    resp = client.delete(f"/api/v1/products/{created['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Product deleted successfully"

    assert client.get(f"/api/v1/products/{created['id']}").status_code == 404
    resp = client.delete(f"/api/v1/products/{created['id']}", headers=admin_headers)
    assert resp.status_code == 404


def test_admin_create_validates_body(client, admin_headers):
    resp = client.post(
        "/api/v1/products", json=_product_data(price=-5), headers=admin_headers
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_customer_cannot_update_or_delete(client, customer_headers, catalog):
    product_id = catalog[0].id
    assert (
        client.put(
            f"/api/v1/products/{product_id}", json={"price": 1}, headers=customer_headers
        ).status_code
        == 403
    )
    assert (
        client.delete(f"/api/v1/products/{product_id}", headers=customer_headers).status_code
        == 403
    )


@pytest.mark.parametrize("price", [float("inf"), float("nan")])
def test_create_rejects_non_finite_price(session, price):
    with pytest.raises(ValidationError):
        product_service.create_product(session, _product_data(price=price))
    assert session.query(Product).count() == 0


def test_update_rejects_non_finite_price(session, catalog):
    with pytest.raises(ValidationError):
        product_service.update_product(session, catalog[0].id, {"price": float("inf")})
    assert product_service.get_product(session, catalog[0].id).price == 59.99


def test_admin_create_rejects_overflowing_price(client, admin_headers):
    body = (
        '{"name": "Lamp", "description": "Bright", "price": 1e309, '
        '"category": "Home", "image": "https://example.com/lamp.jpg", "quantity": 1}'
    )
    resp = client.post(
        "/api/v1/products",
        content=body,
        headers={**admin_headers, "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert client.get("/api/v1/products").json()["pagination"]["total"] == 0
