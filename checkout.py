"""
Checkout and order lifecycle.

Turning a cart into an order re-reads every product, refuses the whole order
when any line lacks stock, and reserves stock with one conditional update per
line. If a reservation loses a race with another checkout, or the order cannot
be written, every reservation already taken is returned before the error
propagates, so a failed checkout never leaves stock decremented.
"""
import logging
import secrets
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from bson.objectid import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, serialize_doc, to_object_id, utcnow
from errors import (
    ForbiddenError,
    InsufficientStockError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from schemas import (
    FINAL_ORDER_STATUSES,
    ORDER_STATUSES,
    Order,
    OrderItem,
    Payment,
    ShippingAddress,
)

log = logging.getLogger("luxora.checkout")

PRODUCT_SUMMARY_FIELDS = ("name", "description", "images", "price", "category", "brand")


def normalize_status(value: str) -> str:
    status = (value or "").strip().lower()
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status. Allowed: {', '.join(ORDER_STATUSES)}")
    return status


def _object_id(product_id: str) -> ObjectId:
    oid = to_object_id(product_id)
    if oid is None:
        raise ValidationError(f"Invalid product id: {product_id}")
    return oid


def merge_lines(items: Iterable[dict]) -> "OrderedDict[str, int]":
    """Collapse repeated product ids into one line, keeping first-seen order."""
    lines: "OrderedDict[str, int]" = OrderedDict()
    for item in items:
        product_id = str(item["product_id"])
        quantity = int(item["quantity"])
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        lines[product_id] = lines.get(product_id, 0) + quantity
    return lines


def cart_lines(db: Database, user_id: str) -> List[dict]:
    cart = db["cart"].find_one({"user_id": user_id})
    if not cart:
        return []
    return [{"product_id": i["product_id"], "quantity": i["quantity"]} for i in cart.get("items", [])]


def fetch_products(db: Database, lines: Dict[str, int]) -> Dict[str, dict]:
    products = {}
    for product_id in lines:
        product = db["product"].find_one({"_id": _object_id(product_id)})
        if not product or not product.get("is_active", True):
            raise NotFoundError(f"Product not found: {product_id}")
        products[product_id] = product
    return products


def check_stock(lines: Dict[str, int], products: Dict[str, dict]):
    for product_id, quantity in lines.items():
        product = products[product_id]
        available = int(product.get("stock", 0))
        if available < quantity:
            raise InsufficientStockError(product_id, product.get("name", product_id), available, quantity)


def release_stock(db: Database, reserved: Iterable[Tuple[ObjectId, int]]):
    for oid, quantity in reserved:
        db["product"].update_one(
            {"_id": oid},
            {"$inc": {"stock": quantity}, "$set": {"updated_at": utcnow()}},
        )


def reserve_stock(db: Database, lines: Dict[str, int], products: Dict[str, dict]) -> List[Tuple[ObjectId, int]]:
    """Decrement stock line by line; only decrements when enough stock remains."""
    reserved: List[Tuple[ObjectId, int]] = []
    for product_id, quantity in lines.items():
        oid = products[product_id]["_id"]
        updated = db["product"].find_one_and_update(
            {"_id": oid, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            release_stock(db, reserved)
            current = db["product"].find_one({"_id": oid}) or {}
            log.warning("Stock for %s changed during checkout, order rolled back", product_id)
            raise InsufficientStockError(
                product_id, products[product_id].get("name", product_id),
                int(current.get("stock", 0)), quantity,
            )
        reserved.append((oid, quantity))
    return reserved


def payment_state(payment_intent_id: Optional[str]) -> Tuple[str, str]:
    """(payment_status, status) for a new order."""
    if payment_intent_id:
        # Not checked against the payment provider; stored with payment_verified=False.
        return "completed", "confirmed"
    return "pending", "pending"


def populate_order(db: Database, order: dict) -> dict:
    """Serialize an order and attach a product summary to each line."""
    data = serialize_doc(order)
    for item in data.get("items", []):
        oid = to_object_id(item.get("product_id"))
        product = db["product"].find_one({"_id": oid}) if oid else None
        item["product"] = (
            {"id": str(product["_id"]), **{k: product.get(k) for k in PRODUCT_SUMMARY_FIELDS}}
            if product else None
        )
    return data


def place_order(db: Database, user: dict, items: Optional[List[dict]], shipping_address: ShippingAddress,
                payment_method: str, payment_intent_id: Optional[str] = None) -> dict:
    user_id = user["id"]
    if not items:
        items = cart_lines(db, user_id)
    lines = merge_lines(items)
    if not lines:
        raise ValidationError("Cart is empty")

    products = fetch_products(db, lines)
    check_stock(lines, products)

    order_items = []
    seller_ids = []
    total = 0.0
    for product_id, quantity in lines.items():
        product = products[product_id]
        seller_id = product.get("seller_id")
        images = product.get("images") or []
        order_items.append(OrderItem(
            product_id=product_id,
            seller_id=seller_id,
            name=product["name"],
            image=images[0] if images else None,
            price=float(product["price"]),
            quantity=quantity,
        ))
        if seller_id and seller_id not in seller_ids:
            seller_ids.append(seller_id)
        total += float(product["price"]) * quantity

    payment_status, status = payment_state(payment_intent_id)
    order = Order(
        user_id=user_id,
        seller_ids=seller_ids,
        items=order_items,
        total_amount=round(total, 2),
        shipping_address=shipping_address,
        payment_method=payment_method,
        payment_status=payment_status,
        payment_intent_id=payment_intent_id,
        payment_verified=False,
        status=status,
    )

    reserved = reserve_stock(db, lines, products)
    try:
        order_id = create_document(db, "order", order)
    except PyMongoError:
        release_stock(db, reserved)
        log.exception("Order insert failed for user %s, stock released", user_id)
        raise InternalError("Failed to create order")

    if payment_intent_id:
        log.warning("Order %s marked paid from unverified payment intent %s", order_id, payment_intent_id)
        record_payment(db, order_id, user_id, order.total_amount, payment_method, payment_intent_id)

    db["cart"].delete_one({"user_id": user_id})
    log.info("Order %s placed by %s: %d lines, total %.2f", order_id, user_id, len(order_items), order.total_amount)
    return populate_order(db, db["order"].find_one({"_id": ObjectId(order_id)}))


def record_payment(db: Database, order_id: str, user_id: str, amount: float, payment_method: str,
                   transaction_id: str) -> str:
    payment = Payment(
        order_id=order_id,
        user_id=user_id,
        amount=amount,
        payment_method=payment_method,
        transaction_id=transaction_id,
        status="success",
        verified=False,
    )
    return create_document(db, "payment", payment)


def get_owned_order(db: Database, user: dict, order_id: str, action: str = "view") -> dict:
    oid = to_object_id(order_id)
    if oid is None:
        raise ValidationError("Invalid order id")
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise NotFoundError("Order not found")
    if order.get("user_id") != user["id"]:
        raise ForbiddenError(f"Not authorized to {action} this order")
    return order


def _restock_order(db: Database, order: dict):
    reserved = []
    for item in order.get("items", []):
        oid = to_object_id(item.get("product_id"))
        if oid is not None:
            reserved.append((oid, int(item.get("quantity", 0))))
    release_stock(db, reserved)


def _transition_to_cancelled(db: Database, order: dict, reason: str) -> dict:
    status = order.get("status")
    if status == "delivered":
        raise ValidationError("Cannot cancel delivered orders")
    if status == "cancelled":
        raise ValidationError("Order is already cancelled")

    now = utcnow()
    result = db["order"].update_one(
        {"_id": order["_id"], "status": {"$nin": list(FINAL_ORDER_STATUSES)}},
        {"$set": {"status": "cancelled", "cancel_reason": reason, "cancelled_at": now, "updated_at": now}},
    )
    if result.modified_count == 0:
        raise ValidationError("Order can no longer be cancelled")
    _restock_order(db, order)
    return db["order"].find_one({"_id": order["_id"]})


def cancel_order(db: Database, user: dict, order_id: str, reason: Optional[str] = None) -> dict:
    order = get_owned_order(db, user, order_id, action="cancel")
    cancelled = _transition_to_cancelled(db, order, reason or "Customer requested cancellation")
    log.info("Order %s cancelled by %s", order_id, user["id"])
    return populate_order(db, cancelled)


def confirm_payment(db: Database, user: dict, order_id: str, payment_intent_id: str) -> dict:
    order = get_owned_order(db, user, order_id, action="pay for")
    if order.get("status") == "cancelled":
        raise ValidationError("Cannot confirm payment for a cancelled order")
    if order.get("payment_status") == "completed":
        return populate_order(db, order)

    update = {
        "payment_status": "completed",
        "payment_intent_id": payment_intent_id,
        "payment_verified": False,
        "updated_at": utcnow(),
    }
    if order.get("status") == "pending":
        update["status"] = "confirmed"
    db["order"].update_one({"_id": order["_id"]}, {"$set": update})
    record_payment(db, str(order["_id"]), user["id"], order.get("total_amount", 0),
                   order.get("payment_method", "card"), payment_intent_id)
    log.warning("Order %s marked paid from unverified payment intent %s", order_id, payment_intent_id)
    return populate_order(db, db["order"].find_one({"_id": order["_id"]}))


def seller_update_status(db: Database, seller: dict, order_id: str, status: str) -> dict:
    status = normalize_status(status)
    oid = to_object_id(order_id)
    if oid is None:
        raise ValidationError("Invalid order id")
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise NotFoundError("Order not found")
    if seller["id"] not in order.get("seller_ids", []):
        raise ForbiddenError("Not authorized to update this order")

    if status == "cancelled":
        if len(order.get("seller_ids", [])) > 1:
            raise ValidationError("Orders with items from several sellers can only be cancelled by the customer")
        updated = _transition_to_cancelled(db, order, "Cancelled by seller")
    else:
        current = order.get("status")
        if current in FINAL_ORDER_STATUSES:
            raise ValidationError(f"Order is {current}")
        update = {"status": status, "updated_at": utcnow()}
        if status == "delivered":
            update["delivered_at"] = utcnow()
        result = db["order"].update_one(
            {"_id": oid, "status": {"$nin": list(FINAL_ORDER_STATUSES)}},
            {"$set": update},
        )
        if result.matched_count == 0:
            raise ValidationError("Order can no longer be updated")
        updated = db["order"].find_one({"_id": oid})
    log.info("Seller %s set order %s to %s", seller["id"], order_id, status)
    return populate_order(db, updated)


def new_client_secret() -> str:
    return f"pi_{secrets.token_hex(12)}_secret_{secrets.token_hex(8)}"
