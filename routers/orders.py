import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from pymongo import DESCENDING
from pymongo.database import Database

from checkout import cancel_order, get_owned_order, normalize_status, place_order, populate_order
from database import get_db
from errors import ValidationError
from routers import pagination, success
from schemas import ShippingAddress, normalize_payment_method
from security import get_current_user

log = logging.getLogger("luxora.orders")

router = APIRouter(prefix="/api/orders", tags=["orders"])


# ----------------------- Models -----------------------
class CheckoutItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    # Accepted from older clients and ignored; prices come from the catalog.
    price: Optional[float] = None


class CheckoutBody(BaseModel):
    items: Optional[List[CheckoutItem]] = None
    shipping_address: ShippingAddress
    payment_method: str = "cod"
    payment_intent_id: Optional[str] = None

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, value):
        return normalize_payment_method(value)


class CancelBody(BaseModel):
    cancel_reason: Optional[str] = Field(None, max_length=500)


def checkout(db: Database, user: dict, body: CheckoutBody) -> dict:
    items = [i.model_dump(include={"product_id", "quantity"}) for i in body.items] if body.items else None
    return place_order(db, user, items, body.shipping_address, body.payment_method, body.payment_intent_id)


# ----------------------- Routes -----------------------
@router.get("")
def list_orders(
    status: str = "all",
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    filt = {"user_id": user["id"]}
    if status != "all":
        filt["status"] = normalize_status(status)
    cursor = db["order"].find(filt).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    orders = [populate_order(db, o) for o in cursor]
    total = db["order"].count_documents(filt)
    return success({"orders": orders, "pagination": pagination(total, page, limit)},
                   message="Orders retrieved successfully")


@router.get("/user/stats")
def order_stats(user=Depends(get_current_user), db: Database = Depends(get_db)):
    totals = list(db["order"].aggregate([
        {"$match": {"user_id": user["id"], "status": {"$ne": "cancelled"}}},
        {"$group": {
            "_id": None,
            "total_orders": {"$sum": 1},
            "total_spent": {"$sum": "$total_amount"},
            "avg_order_value": {"$avg": "$total_amount"},
        }},
    ]))
    status_counts = list(db["order"].aggregate([
        {"$match": {"user_id": user["id"]}},
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
    ]))
    stats = {"total_orders": 0, "total_spent": 0, "avg_order_value": 0}
    if totals:
        stats = {
            "total_orders": totals[0]["total_orders"],
            "total_spent": round(totals[0]["total_spent"], 2),
            "avg_order_value": round(totals[0]["avg_order_value"] or 0, 2),
        }
    return success({
        "stats": stats,
        "status_counts": {row["_id"]: row["count"] for row in status_counts},
    })


@router.get("/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    order = get_owned_order(db, user, order_id)
    return success({"order": populate_order(db, order)}, message="Order retrieved successfully")


@router.post("", status_code=201)
def create_order(body: CheckoutBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return success({"order": checkout(db, user, body)}, message="Order placed successfully")


@router.put("/{order_id}/cancel")
def cancel(order_id: str, body: Optional[CancelBody] = None, user=Depends(get_current_user),
           db: Database = Depends(get_db)):
    reason = body.cancel_reason if body else None
    order = cancel_order(db, user, order_id, reason)
    return success({"order": order}, message="Order cancelled successfully")


@router.delete("/{order_id}")
def delete_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    order = get_owned_order(db, user, order_id, action="delete")
    if order.get("status") != "cancelled":
        raise ValidationError("Only cancelled orders can be deleted")
    db["order"].delete_one({"_id": order["_id"]})
    log.info("User %s deleted order %s", user["id"], order_id)
    return success(message="Order deleted")
