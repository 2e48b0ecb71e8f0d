import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

import config
from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from routers import pagination, success
from schemas import Product as ProductSchema, Review
from security import get_current_seller, get_current_user, get_optional_user

log = logging.getLogger("luxora.products")

router = APIRouter(prefix="/api/products", tags=["products"])

SORT_FIELDS = ("created_at", "price", "rating", "name", "num_reviews")


# ----------------------- Models -----------------------
class ProductBody(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: str = Field(..., min_length=1)
    brand: Optional[str] = None
    images: List[str] = []
    stock: int = Field(0, ge=0)
    featured: bool = False


class ProductUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = None
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None
    is_active: Optional[bool] = None


class ReviewBody(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


# ----------------------- Helpers -----------------------
def discount_for(price: float, original_price: Optional[float]) -> float:
    if original_price and original_price > price:
        return round((1 - price / original_price) * 100)
    return 0


def parse_sort(sort: str):
    field = sort.lstrip("-")
    if field not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {field}")
    return field, DESCENDING if sort.startswith("-") else ASCENDING


def public_product(product: dict) -> dict:
    data = serialize_doc(product)
    data["in_stock"] = data.get("stock", 0) > 0
    return data


def find_product(db: Database, product_id: str) -> dict:
    oid = to_object_id(product_id)
    if oid is None:
        raise ValidationError("Invalid product ID")
    product = db["product"].find_one({"_id": oid})
    if not product:
        raise NotFoundError("Product not found")
    return product


def find_owned_product(db: Database, seller: dict, product_id: str) -> dict:
    product = find_product(db, product_id)
    if product.get("seller_id") != seller["id"]:
        raise ForbiddenError("Not authorized to modify this product")
    return product


def search_filter(term: str) -> dict:
    pattern = {"$regex": re.escape(term), "$options": "i"}
    return {"$or": [{"name": pattern}, {"description": pattern}, {"brand": pattern}]}


# ----------------------- Catalog -----------------------
@router.get("")
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    seller_id: Optional[str] = None,
    min_price: float = Query(0, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    min_rating: float = Query(0, ge=0, le=5),
    featured: Optional[bool] = None,
    sort: str = "-created_at",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Database = Depends(get_db),
):
    filt = {"is_active": True, "price": {"$gte": min_price}}
    if max_price is not None:
        filt["price"]["$lte"] = max_price
    if min_rating:
        filt["rating"] = {"$gte": min_rating}
    if category:
        filt["category"] = category
    if seller_id:
        filt["seller_id"] = seller_id
    if featured is not None:
        filt["featured"] = featured
    if search:
        filt.update(search_filter(search))

    field, direction = parse_sort(sort)
    cursor = db["product"].find(filt).sort(field, direction).skip((page - 1) * limit).limit(limit)
    products = [public_product(p) for p in cursor]
    total = db["product"].count_documents(filt)
    return success({"products": products, "pagination": pagination(total, page, limit)})


@router.get("/categories")
def list_categories(db: Database = Depends(get_db)):
    categories = sorted(c for c in db["product"].distinct("category", {"is_active": True}) if c)
    return success({"categories": categories})


@router.get("/search/q")
def search_products(q: Optional[str] = None, limit: int = Query(20, ge=1, le=100), db: Database = Depends(get_db)):
    if not q or not q.strip():
        raise ValidationError("Search query required")
    filt = {"is_active": True, **search_filter(q.strip())}
    products = [public_product(p) for p in db["product"].find(filt).limit(limit)]
    return success({"products": products, "count": len(products)})


@router.get("/{product_id}")
def get_product(product_id: str, user=Depends(get_optional_user), db: Database = Depends(get_db)):
    product = public_product(find_product(db, product_id))
    if user is not None:
        wishlist = db["wishlist"].find_one({"user_id": user["id"]}) or {}
        product["in_wishlist"] = product["id"] in wishlist.get("product_ids", [])
    return success({"product": product})


# ----------------------- Seller inventory -----------------------
@router.post("", status_code=201)
def create_product(body: ProductBody, seller=Depends(get_current_seller), db: Database = Depends(get_db)):
    if config.SELLER_APPROVAL_REQUIRED and not seller.get("is_approved"):
        raise ForbiddenError("Seller account is awaiting approval")
    product = ProductSchema(
        **body.model_dump(),
        discount=discount_for(body.price, body.original_price),
        seller_id=seller["id"],
    )
    product_id = create_document(db, "product", product)
    log.info("Seller %s created product %s", seller["id"], product_id)
    return success({"product": public_product(find_product(db, product_id))}, message="Product created")


@router.put("/{product_id}")
def update_product(product_id: str, body: ProductUpdateBody, seller=Depends(get_current_seller),
                   db: Database = Depends(get_db)):
    product = find_owned_product(db, seller, product_id)
    update = body.model_dump(exclude_none=True)
    if not update:
        raise ValidationError("No changes provided")
    price = update.get("price", product.get("price", 0))
    original_price = update.get("original_price", product.get("original_price"))
    update["discount"] = discount_for(price, original_price)
    update["updated_at"] = utcnow()
    db["product"].update_one({"_id": product["_id"]}, {"$set": update})
    log.info("Seller %s updated product %s", seller["id"], product_id)
    return success({"product": public_product(find_product(db, product_id))}, message="Product updated")


@router.delete("/{product_id}")
def delete_product(product_id: str, seller=Depends(get_current_seller), db: Database = Depends(get_db)):
    product = find_owned_product(db, seller, product_id)
    db["product"].delete_one({"_id": product["_id"]})
    db["wishlist"].update_many({}, {"$pull": {"product_ids": product_id}})
    db["cart"].update_many({}, {"$pull": {"items": {"product_id": product_id}}})
    log.info("Seller %s deleted product %s", seller["id"], product_id)
    return success(message="Product deleted")


# ----------------------- Reviews -----------------------
@router.post("/{product_id}/reviews", status_code=201)
def add_review(product_id: str, body: ReviewBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    product = find_product(db, product_id)
    reviews = product.get("reviews", [])
    if any(r.get("user_id") == user["id"] for r in reviews):
        raise ConflictError("You have already reviewed this product")

    review = Review(user_id=user["id"], name=user["name"], rating=body.rating,
                    comment=body.comment, created_at=utcnow()).model_dump()
    ratings = [r["rating"] for r in reviews] + [body.rating]
    db["product"].update_one(
        {"_id": product["_id"]},
        {
            "$push": {"reviews": review},
            "$set": {
                "rating": round(sum(ratings) / len(ratings), 1),
                "num_reviews": len(ratings),
                "updated_at": utcnow(),
            },
        },
    )
    return success({"product": public_product(find_product(db, product_id))}, message="Review added")
