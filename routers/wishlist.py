from fastapi import APIRouter, Depends
from pymongo.database import Database

from database import get_db, serialize_doc, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from routers import success
from security import get_current_user

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


def get_or_create_wishlist(db: Database, user_id: str) -> dict:
    now = utcnow()
    db["wishlist"].update_one(
        {"user_id": user_id},
        {"$setOnInsert": {"product_ids": [], "created_at": now, "updated_at": now}},
        upsert=True,
    )
    return db["wishlist"].find_one({"user_id": user_id})


def wishlist_view(db: Database, wishlist: dict) -> dict:
    products = []
    for product_id in wishlist.get("product_ids", []):
        oid = to_object_id(product_id)
        product = db["product"].find_one({"_id": oid}) if oid else None
        if product:
            products.append(serialize_doc(product))
    return {"product_ids": wishlist.get("product_ids", []), "products": products}


def toggle_product(db: Database, user_id: str, product_id: str) -> bool:
    """Add ``product_id`` when absent, remove it when present; returns membership afterwards."""
    wishlist = get_or_create_wishlist(db, user_id)
    if product_id in wishlist.get("product_ids", []):
        db["wishlist"].update_one(
            {"_id": wishlist["_id"]},
            {"$pull": {"product_ids": product_id}, "$set": {"updated_at": utcnow()}},
        )
        return False

    oid = to_object_id(product_id)
    if oid is None:
        raise ValidationError("Invalid product ID")
    if not db["product"].find_one({"_id": oid}):
        raise NotFoundError("Product not found")
    db["wishlist"].update_one(
        {"_id": wishlist["_id"]},
        {"$addToSet": {"product_ids": product_id}, "$set": {"updated_at": utcnow()}},
    )
    return True


@router.get("")
def get_wishlist(user=Depends(get_current_user), db: Database = Depends(get_db)):
    wishlist = get_or_create_wishlist(db, user["id"])
    return success({"wishlist": wishlist_view(db, wishlist)})


@router.post("/{product_id}")
def toggle(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    added = toggle_product(db, user["id"], product_id)
    wishlist = db["wishlist"].find_one({"user_id": user["id"]})
    return success(
        {"wishlist": wishlist_view(db, wishlist), "in_wishlist": added},
        message="Added to wishlist" if added else "Removed from wishlist",
    )


@router.delete("/{product_id}")
def remove(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    wishlist = get_or_create_wishlist(db, user["id"])
    db["wishlist"].update_one(
        {"_id": wishlist["_id"]},
        {"$pull": {"product_ids": product_id}, "$set": {"updated_at": utcnow()}},
    )
    wishlist = db["wishlist"].find_one({"_id": wishlist["_id"]})
    return success({"wishlist": wishlist_view(db, wishlist)}, message="Removed from wishlist")


@router.delete("")
def clear(user=Depends(get_current_user), db: Database = Depends(get_db)):
    db["wishlist"].update_one(
        {"user_id": user["id"]},
        {"$set": {"product_ids": [], "updated_at": utcnow()}},
    )
    return success(message="Wishlist cleared")
