import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo.database import Database

from database import get_db, serialize_doc, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from routers import success
from security import get_current_user

log = logging.getLogger("luxora.cart")

router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddToCartBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class SetQuantityBody(BaseModel):
    quantity: int


# ----------------------- Helpers -----------------------
def _load_product(db: Database, product_id: str) -> dict:
    oid = to_object_id(product_id)
    if oid is None:
        raise ValidationError("Invalid product ID")
    product = db["product"].find_one({"_id": oid, "is_active": True})
    if not product:
        raise NotFoundError("Product not found")
    return product


def _check_available(product: dict, quantity: int):
    stock = int(product.get("stock", 0))
    if quantity > stock:
        raise ValidationError(f"Only {stock} left in stock for {product['name']}")


def _items(db: Database, user_id: str) -> list:
    cart = db["cart"].find_one({"user_id": user_id})
    return list(cart.get("items", [])) if cart else []


def _save(db: Database, user_id: str, items: list):
    db["cart"].update_one(
        {"user_id": user_id},
        {"$set": {"items": items, "updated_at": utcnow()}, "$setOnInsert": {"created_at": utcnow()}},
        upsert=True,
    )


def cart_view(db: Database, user_id: str) -> dict:
    """The cart with each line joined to its current product and price."""
    lines = []
    total = 0.0
    for item in _items(db, user_id):
        oid = to_object_id(item["product_id"])
        product = db["product"].find_one({"_id": oid}) if oid else None
        if not product:
            continue
        line_total = round(float(product["price"]) * item["quantity"], 2)
        total += line_total
        lines.append({
            "product_id": item["product_id"],
            "quantity": item["quantity"],
            "price": product["price"],
            "line_total": line_total,
            "product": serialize_doc(product),
        })
    return {
        "items": lines,
        "total": round(total, 2),
        "item_count": sum(line["quantity"] for line in lines),
    }


def _set_quantity(db: Database, user_id: str, product_id: str, quantity: int) -> dict:
    items = _items(db, user_id)
    line = next((i for i in items if i["product_id"] == product_id), None)
    if line is None:
        raise NotFoundError("Product not in cart")
    if quantity < 1:
        items = [i for i in items if i["product_id"] != product_id]
    else:
        _check_available(_load_product(db, product_id), quantity)
        line["quantity"] = quantity
    _save(db, user_id, items)
    return cart_view(db, user_id)


# ----------------------- Routes -----------------------
@router.get("")
def get_cart(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return success({"cart": cart_view(db, user["id"])})


@router.post("")
def add_to_cart(body: AddToCartBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    product = _load_product(db, body.product_id)
    items = _items(db, user["id"])
    line = next((i for i in items if i["product_id"] == body.product_id), None)
    quantity = body.quantity + (line["quantity"] if line else 0)
    _check_available(product, quantity)
    if line:
        line["quantity"] = quantity
    else:
        items.append({"product_id": body.product_id, "quantity": body.quantity})
    _save(db, user["id"], items)
    return success({"cart": cart_view(db, user["id"])}, message="Added to cart")


@router.put("/{product_id}")
def set_quantity(product_id: str, body: SetQuantityBody, user=Depends(get_current_user),
                 db: Database = Depends(get_db)):
    return success({"cart": _set_quantity(db, user["id"], product_id, max(1, body.quantity))})


@router.post("/{product_id}/increase")
def increase(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    line = next((i for i in _items(db, user["id"]) if i["product_id"] == product_id), None)
    if line is None:
        raise NotFoundError("Product not in cart")
    return success({"cart": _set_quantity(db, user["id"], product_id, line["quantity"] + 1)})


@router.post("/{product_id}/decrease")
def decrease(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    line = next((i for i in _items(db, user["id"]) if i["product_id"] == product_id), None)
    if line is None:
        raise NotFoundError("Product not in cart")
    # Decreasing a single unit removes the line.
    return success({"cart": _set_quantity(db, user["id"], product_id, line["quantity"] - 1)})


@router.delete("/{product_id}")
def remove_item(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    items = _items(db, user["id"])
    remaining = [i for i in items if i["product_id"] != product_id]
    if len(remaining) == len(items):
        raise NotFoundError("Product not in cart")
    _save(db, user["id"], remaining)
    return success({"cart": cart_view(db, user["id"])}, message="Removed from cart")


@router.delete("")
def clear_cart(user=Depends(get_current_user), db: Database = Depends(get_db)):
    db["cart"].delete_one({"user_id": user["id"]})
    log.info("Cleared cart for user %s", user["id"])
    return success(message="Cart cleared")
