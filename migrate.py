"""
One-off migration of legacy order documents.

Older orders carried two overlapping status fields (``status`` and
``orderStatus``) in mixed case, and camelCase field names. This rewrites them
to the single lowercase ``status`` and snake_case names used by the API.
Running it again is a no-op.
"""
import logging

from pymongo.database import Database

from schemas import ORDER_STATUSES

log = logging.getLogger("luxora.migrate")

RENAMED_FIELDS = {
    "userId": "user_id",
    "totalAmount": "total_amount",
    "totalPrice": "total_amount",
    "shippingAddress": "shipping_address",
    "paymentMethod": "payment_method",
    "paymentStatus": "payment_status",
    "cancelReason": "cancel_reason",
    "cancelledAt": "cancelled_at",
    "deliveredAt": "delivered_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

LEGACY_STATUSES = {
    "placed": "pending",
    "paid": "confirmed",
}

LEGACY_PAYMENT_STATUSES = {
    "paid": "completed",
    "success": "completed",
}


def canonical_status(status, order_status) -> str:
    """Pick one status from the legacy pair, preferring the furthest-along value."""
    candidates = []
    for value in (status, order_status):
        if not value:
            continue
        value = str(value).strip().lower()
        value = LEGACY_STATUSES.get(value, value)
        if value in ORDER_STATUSES:
            candidates.append(value)
    if not candidates:
        return "pending"
    return max(candidates, key=ORDER_STATUSES.index)


def migrate_order(order: dict) -> dict:
    """Return the ``$set``/``$unset`` update for one order, or an empty dict."""
    set_fields = {}
    unset_fields = {}

    for old, new in RENAMED_FIELDS.items():
        if old in order:
            if new not in order and new not in set_fields:
                set_fields[new] = order[old]
            unset_fields[old] = ""

    status = canonical_status(order.get("status"), order.get("orderStatus"))
    if order.get("status") != status:
        set_fields["status"] = status
    if "orderStatus" in order:
        unset_fields["orderStatus"] = ""

    payment_status = set_fields.get("payment_status", order.get("payment_status"))
    if payment_status is not None:
        normalized = str(payment_status).strip().lower()
        normalized = LEGACY_PAYMENT_STATUSES.get(normalized, normalized)
        if normalized != payment_status:
            set_fields["payment_status"] = normalized

    items = order.get("items") or []
    if any("productId" in i for i in items):
        set_fields["items"] = [
            {("product_id" if k == "productId" else k): (str(v) if k == "productId" else v) for k, v in i.items()}
            for i in items
        ]

    user_id = set_fields.get("user_id", order.get("user_id"))
    if user_id is not None and not isinstance(user_id, str):
        set_fields["user_id"] = str(user_id)

    update = {}
    if set_fields:
        update["$set"] = set_fields
    if unset_fields:
        update["$unset"] = unset_fields
    return update


def normalize_orders(db: Database) -> int:
    migrated = 0
    for order in db["order"].find({}):
        update = migrate_order(order)
        if update:
            db["order"].update_one({"_id": order["_id"]}, update)
            migrated += 1
    log.info("Migrated %d orders", migrated)
    return migrated


if __name__ == "__main__":
    from config import setup_logging
    from database import init_db

    setup_logging()
    print(f"Migrated {normalize_orders(init_db())} orders")
