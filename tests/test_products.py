import pytest

import config
from conftest import auth, make_product, register_seller

PRODUCT = {
    "name": "Smart Watch Pro",
    "description": "Health tracking and GPS",
    "price": 399,
    "original_price": 499,
    "category": "electronics",
    "brand": "TechWear",
    "stock": 30,
}


def create(client, token, **overrides):
    return client.post("/api/products", headers=auth(token), json={**PRODUCT, **overrides})


def test_seller_creates_product_scoped_to_itself(client, seller):
    resp = create(client, seller["token"], seller_id="someone-else")
    assert resp.status_code == 201
    product = resp.json()["data"]["product"]
    assert product["seller_id"] == seller["seller"]["id"]
    assert product["discount"] == 20
    assert product["in_stock"] is True


def test_customer_cannot_create_product(client, user_token):
    assert create(client, user_token).status_code == 403


def test_create_product_validates_fields(client, seller_token):
    assert create(client, seller_token, price=-1).status_code == 400
    assert create(client, seller_token, stock=-3).status_code == 400


def test_unapproved_seller_blocked_when_approval_required(client, seller_token, monkeypatch):
    monkeypatch.setattr(config, "SELLER_APPROVAL_REQUIRED", True)
    resp = create(client, seller_token)
    assert resp.status_code == 403


def test_list_products_filters_and_paginates(client, db):
    make_product(db, name="Budget Earbuds", price=20, category="electronics", rating=3)
    make_product(db, name="Leather Jacket", price=250, category="clothing", rating=4.6)
    make_product(db, name="Running Shoes", price=120, category="sports", rating=4.8)
    make_product(db, name="Hidden", price=50, category="sports", is_active=False)

    body = client.get("/api/products").json()["data"]
    assert body["pagination"]["total"] == 3

    sports = client.get("/api/products", params={"category": "sports"}).json()["data"]["products"]
    assert [p["name"] for p in sports] == ["Running Shoes"]

    priced = client.get("/api/products", params={"min_price": 100, "max_price": 200}).json()["data"]["products"]
    assert [p["name"] for p in priced] == ["Running Shoes"]

    rated = client.get("/api/products", params={"min_rating": 4.5, "sort": "price"}).json()["data"]["products"]
    assert [p["name"] for p in rated] == ["Running Shoes", "Leather Jacket"]

    found = client.get("/api/products", params={"search": "leather"}).json()["data"]["products"]
    assert [p["name"] for p in found] == ["Leather Jacket"]

    page = client.get("/api/products", params={"limit": 2, "page": 2, "sort": "price"}).json()["data"]
    assert [p["name"] for p in page["products"]] == ["Leather Jacket"]
    assert page["pagination"]["pages"] == 2


def test_list_products_rejects_unknown_sort(client):
    assert client.get("/api/products", params={"sort": "password"}).status_code == 400


def test_search_endpoint_and_categories(client, db):
    make_product(db, name="Coffee Mug", category="home")
    make_product(db, name="Headphones", category="electronics")
    assert client.get("/api/products/search/q").status_code == 400
    body = client.get("/api/products/search/q", params={"q": "mug"}).json()["data"]
    assert body["count"] == 1
    categories = client.get("/api/products/categories").json()["data"]["categories"]
    assert categories == ["electronics", "home"]


def test_get_product_errors(client):
    assert client.get("/api/products/not-an-id").status_code == 400
    assert client.get("/api/products/64b7f0c2a1b2c3d4e5f60718").status_code == 404


def test_get_product_marks_wishlist_membership(client, db, user_token):
    product_id = make_product(db)
    assert "in_wishlist" not in client.get(f"/api/products/{product_id}").json()["data"]["product"]
    client.post(f"/api/wishlist/{product_id}", headers=auth(user_token))
    product = client.get(f"/api/products/{product_id}", headers=auth(user_token)).json()["data"]["product"]
    assert product["in_wishlist"] is True


def test_only_owner_can_update_or_delete(client, seller_token):
    product_id = create(client, seller_token).json()["data"]["product"]["id"]
    rival = register_seller(client, email="rival@mail.com", business_name="Rival").json()["data"]["token"]

    assert client.put(f"/api/products/{product_id}", headers=auth(rival), json={"price": 1}).status_code == 403
    assert client.delete(f"/api/products/{product_id}", headers=auth(rival)).status_code == 403

    resp = client.put(f"/api/products/{product_id}", headers=auth(seller_token), json={"price": 449, "stock": 12})
    assert resp.status_code == 200
    product = resp.json()["data"]["product"]
    assert product["price"] == 449
    assert product["stock"] == 12
    assert product["discount"] == 10

    assert client.delete(f"/api/products/{product_id}", headers=auth(seller_token)).status_code == 200
    assert client.get(f"/api/products/{product_id}").status_code == 404


def test_update_requires_changes(client, seller_token):
    product_id = create(client, seller_token).json()["data"]["product"]["id"]
    assert client.put(f"/api/products/{product_id}", headers=auth(seller_token), json={}).status_code == 400


def test_reviews_update_rating_once_per_user(client, db, user_token, other_user_token):
    product_id = make_product(db)
    first = client.post(f"/api/products/{product_id}/reviews", headers=auth(user_token),
                        json={"rating": 5, "comment": "Great"})
    assert first.status_code == 201
    client.post(f"/api/products/{product_id}/reviews", headers=auth(other_user_token), json={"rating": 2})
    product = client.get(f"/api/products/{product_id}").json()["data"]["product"]
    assert product["num_reviews"] == 2
    assert product["rating"] == pytest.approx(3.5)

    again = client.post(f"/api/products/{product_id}/reviews", headers=auth(user_token), json={"rating": 1})
    assert again.status_code == 409


def test_seller_lists_own_products(client, db, seller):
    create(client, seller["token"])
    make_product(db)
    body = client.get("/api/seller/products", headers=auth(seller["token"])).json()["data"]
    assert body["pagination"]["total"] == 1
    assert body["products"][0]["seller_id"] == seller["seller"]["id"]
