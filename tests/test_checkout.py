import pytest
from bson.objectid import ObjectId
from pymongo.errors import PyMongoError

import checkout
from checkout import merge_lines, reserve_stock
from conftest import SHIPPING_ADDRESS, auth, make_product, stock_of
from errors import InsufficientStockError, ValidationError


def place(client, token, items=None, **extra):
    body = {"shipping_address": SHIPPING_ADDRESS, **extra}
    if items is not None:
        body["items"] = items
    return client.post("/api/orders", headers=auth(token), json=body)


def test_checkout_totals_from_catalog_and_decrements_stock(client, db, user_token):
    product_id = make_product(db, price=100, stock=5)
    client.post("/api/cart", headers=auth(user_token), json={"product_id": product_id, "quantity": 2})

    resp = place(client, user_token, [{"product_id": product_id, "quantity": 2, "price": 100}])

    assert resp.status_code == 201
    order = resp.json()["data"]["order"]
    assert order["total_amount"] == 200
    assert order["items"][0]["product"]["name"] == "Wireless Headphones"
    assert stock_of(db, product_id) == 3
    assert db["cart"].find_one({}) is None


def test_client_price_is_ignored(client, db, user_token):
    product_id = make_product(db, price=100, stock=5)
    order = place(client, user_token, [{"product_id": product_id, "quantity": 1, "price": 1}]).json()["data"]["order"]
    assert order["items"][0]["price"] == 100
    assert order["total_amount"] == 100


def test_checkout_uses_stored_cart(client, db, user_token):
    product_id = make_product(db, price=40, stock=5)
    client.post("/api/cart", headers=auth(user_token), json={"product_id": product_id, "quantity": 3})
    order = place(client, user_token).json()["data"]["order"]
    assert order["total_amount"] == 120
    assert stock_of(db, product_id) == 2


def test_empty_cart_rejected(client, user_token):
    resp = place(client, user_token)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cart is empty"


def test_insufficient_stock_names_product_and_keeps_stock(client, db, user_token):
    product_id = make_product(db, name="Desk Lamp", stock=1)
    resp = place(client, user_token, [{"product_id": product_id, "quantity": 2}])

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "Desk Lamp" in body["message"]
    assert body["product_id"] == product_id
    assert stock_of(db, product_id) == 1
    assert db["order"].count_documents({}) == 0


def test_multi_line_failure_leaves_every_stock_unchanged(client, db, user_token):
    plenty = make_product(db, name="Mug", stock=10)
    scarce = make_product(db, name="Teapot", stock=1)
    resp = place(client, user_token, [
        {"product_id": plenty, "quantity": 4},
        {"product_id": scarce, "quantity": 2},
    ])
    assert resp.status_code == 400
    assert stock_of(db, plenty) == 10
    assert stock_of(db, scarce) == 1


def test_repeated_lines_are_merged_before_stock_check(client, db, user_token):
    product_id = make_product(db, stock=3)
    resp = place(client, user_token, [
        {"product_id": product_id, "quantity": 2},
        {"product_id": product_id, "quantity": 2},
    ])
    assert resp.status_code == 400
    assert stock_of(db, product_id) == 3


def test_lost_race_releases_earlier_reservations(db):
    first = make_product(db, name="Mug", stock=5)
    second = make_product(db, name="Teapot", stock=2)
    lines = merge_lines([{"product_id": first, "quantity": 2}, {"product_id": second, "quantity": 2}])
    products = {pid: db["product"].find_one({"_id": ObjectId(pid)}) for pid in lines}
    # Another checkout takes the teapots after our stock check.
    db["product"].update_one({"_id": ObjectId(second)}, {"$set": {"stock": 1}})

    with pytest.raises(InsufficientStockError) as exc:
        reserve_stock(db, lines, products)

    assert exc.value.product_id == second
    assert stock_of(db, first) == 5
    assert stock_of(db, second) == 1


def test_failed_order_insert_releases_stock(client, db, user_token, monkeypatch):
    product_id = make_product(db, stock=5)

    def broken_insert(*args, **kwargs):
        raise PyMongoError("write failed")

    monkeypatch.setattr(checkout, "create_document", broken_insert)
    resp = place(client, user_token, [{"product_id": product_id, "quantity": 2}])
    assert resp.status_code == 500
    assert stock_of(db, product_id) == 5


def test_merge_lines_rejects_zero_quantity():
    with pytest.raises(ValidationError):
        merge_lines([{"product_id": "abc", "quantity": 0}])


def test_cash_on_delivery_order_is_pending(client, db, user_token):
    product_id = make_product(db)
    order = place(client, user_token, [{"product_id": product_id, "quantity": 1}],
                  payment_method="Cash on Delivery").json()["data"]["order"]
    assert order["payment_method"] == "cod"
    assert order["payment_status"] == "pending"
    assert order["status"] == "pending"
    assert db["payment"].count_documents({}) == 0


def test_payment_intent_marks_order_paid_but_unverified(client, db, user_token):
    product_id = make_product(db)
    order = place(client, user_token, [{"product_id": product_id, "quantity": 1}],
                  payment_method="card", payment_intent_id="pi_123").json()["data"]["order"]
    assert order["payment_status"] == "completed"
    assert order["status"] == "confirmed"
    assert order["payment_verified"] is False
    payment = db["payment"].find_one({"order_id": order["id"]})
    assert payment["transaction_id"] == "pi_123"
    assert payment["verified"] is False


def test_unknown_payment_method_rejected(client, db, user_token):
    product_id = make_product(db)
    resp = place(client, user_token, [{"product_id": product_id, "quantity": 1}], payment_method="barter")
    assert resp.status_code == 400


def test_shipping_address_is_validated(client, db, user_token):
    product_id = make_product(db)
    resp = client.post("/api/orders", headers=auth(user_token), json={
        "items": [{"product_id": product_id, "quantity": 1}],
        "shipping_address": {**SHIPPING_ADDRESS, "zip_code": "12"},
    })
    assert resp.status_code == 400


def test_order_records_each_seller(client, db, user_token):
    first_seller, second_seller = str(ObjectId()), str(ObjectId())
    mug = make_product(db, seller_id=first_seller, name="Mug")
    lamp = make_product(db, seller_id=second_seller, name="Lamp")
    order = place(client, user_token, [
        {"product_id": mug, "quantity": 1},
        {"product_id": lamp, "quantity": 1},
    ]).json()["data"]["order"]
    assert order["seller_ids"] == [first_seller, second_seller]
    assert [i["seller_id"] for i in order["items"]] == [first_seller, second_seller]


# ----------------------- Order lifecycle -----------------------
def test_list_and_get_orders(client, db, user_token, other_user_token):
    product_id = make_product(db, stock=10)
    order_id = place(client, user_token, [{"product_id": product_id, "quantity": 1}]).json()["data"]["order"]["id"]

    body = client.get("/api/orders", headers=auth(user_token)).json()["data"]
    assert [o["id"] for o in body["orders"]] == [order_id]
    assert body["pagination"]["total"] == 1

    assert client.get("/api/orders", headers=auth(other_user_token)).json()["data"]["orders"] == []
    assert client.get(f"/api/orders/{order_id}", headers=auth(user_token)).status_code == 200
    assert client.get(f"/api/orders/{order_id}", headers=auth(other_user_token)).status_code == 403
    assert client.get("/api/orders/nope", headers=auth(user_token)).status_code == 400
    assert client.get(f"/api/orders/{ObjectId()}", headers=auth(user_token)).status_code == 404


def test_list_orders_filters_by_status(client, db, user_token):
    product_id = make_product(db, stock=10)
    first = place(client, user_token, [{"product_id": product_id, "quantity": 1}]).json()["data"]["order"]["id"]
    place(client, user_token, [{"product_id": product_id, "quantity": 1}])
    client.put(f"/api/orders/{first}/cancel", headers=auth(user_token))

    cancelled = client.get("/api/orders", headers=auth(user_token), params={"status": "Cancelled"}).json()
    assert [o["id"] for o in cancelled["data"]["orders"]] == [first]
    assert client.get("/api/orders", headers=auth(user_token), params={"status": "lost"}).status_code == 400


def test_cancel_restocks_and_cannot_repeat(client, db, user_token):
    product_id = make_product(db, stock=5)
    order_id = place(client, user_token, [{"product_id": product_id, "quantity": 2}]).json()["data"]["order"]["id"]
    assert stock_of(db, product_id) == 3

    resp = client.put(f"/api/orders/{order_id}/cancel", headers=auth(user_token), json={"cancel_reason": "Changed mind"})
    assert resp.status_code == 200
    order = resp.json()["data"]["order"]
    assert order["status"] == "cancelled"
    assert order["cancel_reason"] == "Changed mind"
    assert order["cancelled_at"]
    assert stock_of(db, product_id) == 5

    again = client.put(f"/api/orders/{order_id}/cancel", headers=auth(user_token))
    assert again.status_code == 400
    assert stock_of(db, product_id) == 5


def test_cancel_uses_default_reason(client, db, user_token):
    product_id = make_product(db)
    order_id = place(client, user_token, [{"product_id": product_id, "quantity": 1}]).json()["data"]["order"]["id"]
    order = client.put(f"/api/orders/{order_id}/cancel", headers=auth(user_token)).json()["data"]["order"]
    assert order["cancel_reason"] == "Customer requested cancellation"


def test_cannot_cancel_delivered_order(client, db, user_token):
    product_id = make_product(db)
    order_id = place(client, user_token, [{"product_id": product_id, "quantity": 1}]).json()["data"]["order"]["id"]
    db["order"].update_one({"_id": ObjectId(order_id)}, {"$set": {"status": "delivered"}})

    resp = client.put(f"/api/orders/{order_id}/cancel", headers=auth(user_token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot cancel delivered orders"


def test_cannot_cancel_someone_elses_order(client, db, user_token, other_user_token):
    product_id = make_product(db)
    order_id = place(client, user_token, [{"product_id": product_id, "quantity": 1}]).json()["data"]["order"]["id"]
    assert client.put(f"/api/orders/{order_id}/cancel", headers=auth(other_user_token)).status_code == 403
    assert db["order"].find_one({"_id": ObjectId(order_id)})["status"] == "pending"


def test_only_cancelled_orders_can_be_deleted(client, db, user_token):
    product_id = make_product(db)
    order_id = place(client, user_token, [{"product_id": product_id, "quantity": 1}]).json()["data"]["order"]["id"]
    assert client.delete(f"/api/orders/{order_id}", headers=auth(user_token)).status_code == 400

    client.put(f"/api/orders/{order_id}/cancel", headers=auth(user_token))
    assert client.delete(f"/api/orders/{order_id}", headers=auth(user_token)).status_code == 200
    assert db["order"].count_documents({}) == 0


def test_order_stats_exclude_cancelled(client, db, user_token):
    product_id = make_product(db, price=100, stock=10)
    place(client, user_token, [{"product_id": product_id, "quantity": 1}])
    place(client, user_token, [{"product_id": product_id, "quantity": 3}])
    cancelled = place(client, user_token, [{"product_id": product_id, "quantity": 2}]).json()["data"]["order"]["id"]
    client.put(f"/api/orders/{cancelled}/cancel", headers=auth(user_token))

    data = client.get("/api/orders/user/stats", headers=auth(user_token)).json()["data"]
    assert data["stats"] == {"total_orders": 2, "total_spent": 400, "avg_order_value": 200}
    assert data["status_counts"] == {"pending": 2, "cancelled": 1}


def test_order_stats_for_new_user(client, user_token):
    data = client.get("/api/orders/user/stats", headers=auth(user_token)).json()["data"]
    assert data["stats"]["total_orders"] == 0
    assert data["status_counts"] == {}


# ----------------------- Payment -----------------------
def test_payment_config_and_intent(client, user_token):
    assert "publishable_key" in client.get("/api/payment/config").json()["data"]

    resp = client.post("/api/payment/create-payment-intent", headers=auth(user_token), json={"amount": 250})
    data = resp.json()["data"]
    assert data["client_secret"].startswith(data["payment_intent_id"] + "_secret_")
    assert data["currency"] == "inr"

    bad = client.post("/api/payment/create-payment-intent", headers=auth(user_token), json={"amount": 0})
    assert bad.status_code == 400


def test_payment_create_order_then_confirm(client, db, user_token):
    product_id = make_product(db, price=50, stock=4)
    resp = client.post("/api/payment/create-order", headers=auth(user_token), json={
        "items": [{"product_id": product_id, "quantity": 2}],
        "shipping_address": SHIPPING_ADDRESS,
        "payment_method": "card",
    })
    assert resp.status_code == 201
    order = resp.json()["data"]["order"]
    assert order["payment_status"] == "pending"
    assert stock_of(db, product_id) == 2

    confirmed = client.post("/api/payment/confirm-payment", headers=auth(user_token),
                            json={"order_id": order["id"], "payment_intent_id": "pi_abc"})
    assert confirmed.status_code == 200
    paid = confirmed.json()["data"]["order"]
    assert paid["payment_status"] == "completed"
    assert paid["status"] == "confirmed"
    assert paid["payment_verified"] is False
    assert db["payment"].count_documents({"order_id": order["id"]}) == 1

    # Confirming twice does not record a second payment.
    client.post("/api/payment/confirm-payment", headers=auth(user_token),
                json={"order_id": order["id"], "payment_intent_id": "pi_abc"})
    assert db["payment"].count_documents({"order_id": order["id"]}) == 1


def test_cannot_confirm_payment_for_cancelled_order(client, db, user_token):
    product_id = make_product(db)
    order_id = place(client, user_token, [{"product_id": product_id, "quantity": 1}]).json()["data"]["order"]["id"]
    client.put(f"/api/orders/{order_id}/cancel", headers=auth(user_token))
    resp = client.post("/api/payment/confirm-payment", headers=auth(user_token),
                       json={"order_id": order_id, "payment_intent_id": "pi_abc"})
    assert resp.status_code == 400
