import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from checkout import normalize_status, seller_update_status
from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from errors import AuthError, ConflictError, ForbiddenError, ValidationError
from routers import pagination, success
from routers.products import create_product, delete_product, public_product, update_product
from schemas import Address, BankDetails, BusinessType, Seller as SellerSchema, seller_public_data
from security import create_token, get_current_seller, hash_password, verify_password
from validation import check_gst, check_mobile, check_pan, check_strong_password

log = logging.getLogger("luxora.seller")

router = APIRouter(prefix="/api/seller", tags=["seller"])

LOW_STOCK_THRESHOLD = 5


# ----------------------- Models -----------------------
class SellerRegisterBody(BaseModel):
    business_name: str = Field(..., min_length=2, max_length=100)
    business_type: Optional[BusinessType] = None
    owner_name: Optional[str] = Field(None, max_length=50)
    email: EmailStr
    mobile: Optional[str] = None
    password: str
    business_address: Optional[Address] = None
    gst_number: Optional[str] = None
    pan_number: Optional[str] = None
    bank_details: Optional[BankDetails] = None

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, value):
        return check_mobile(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value):
        return check_strong_password(value)

    @field_validator("gst_number")
    @classmethod
    def validate_gst(cls, value):
        return check_gst(value)

    @field_validator("pan_number")
    @classmethod
    def validate_pan(cls, value):
        return check_pan(value)


class SellerLoginBody(BaseModel):
    email: str
    password: str


class SellerProfileBody(BaseModel):
    business_name: Optional[str] = Field(None, min_length=2, max_length=100)
    business_type: Optional[BusinessType] = None
    owner_name: Optional[str] = Field(None, max_length=50)
    mobile: Optional[str] = None
    business_address: Optional[Address] = None
    gst_number: Optional[str] = None
    pan_number: Optional[str] = None
    bank_details: Optional[BankDetails] = None

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, value):
        return check_mobile(value)

    @field_validator("gst_number")
    @classmethod
    def validate_gst(cls, value):
        return check_gst(value)

    @field_validator("pan_number")
    @classmethod
    def validate_pan(cls, value):
        return check_pan(value)


class OrderStatusBody(BaseModel):
    status: str


# ----------------------- Helpers -----------------------
def seller_session(seller: dict) -> dict:
    data = seller_public_data(serialize_doc(seller))
    return {"token": create_token(data["id"], "seller", "seller"), "seller": data}


def seller_order_view(order: dict, seller_id: str, customers: dict) -> dict:
    """An order as one seller sees it: only that seller's lines and subtotal."""
    data = serialize_doc(order)
    items = [i for i in data.get("items", []) if i.get("seller_id") == seller_id]
    customer = customers.get(data.get("user_id")) or {}
    data["items"] = items
    data["seller_total"] = round(sum(i["price"] * i["quantity"] for i in items), 2)
    data["customer_name"] = customer.get("name", "Unknown")
    data["customer_email"] = customer.get("email")
    data.pop("seller_ids", None)
    return data


def _customers(db: Database, orders: list) -> dict:
    ids = {to_object_id(o.get("user_id")) for o in orders}
    ids.discard(None)
    if not ids:
        return {}
    return {str(u["_id"]): u for u in db["user"].find({"_id": {"$in": list(ids)}})}


# ----------------------- Auth -----------------------
@router.post("/auth/register", status_code=201)
def register(body: SellerRegisterBody, db: Database = Depends(get_db)):
    email = body.email.lower()
    if db["seller"].find_one({"email": email}):
        raise ConflictError("Seller already exists")

    seller = SellerSchema(
        business_name=body.business_name.strip(),
        business_type=body.business_type,
        owner_name=body.owner_name,
        email=email,
        mobile=body.mobile,
        password_hash=hash_password(body.password),
        business_address=body.business_address or Address(),
        gst_number=body.gst_number,
        pan_number=body.pan_number,
        bank_details=body.bank_details or BankDetails(),
    )
    try:
        seller_id = create_document(db, "seller", seller)
    except DuplicateKeyError:
        raise ConflictError("Seller already exists")
    log.info("Registered seller %s", seller_id)
    return success(seller_session(db["seller"].find_one({"email": email})),
                   message="Seller registered successfully")


@router.post("/auth/login")
def login(body: SellerLoginBody, db: Database = Depends(get_db)):
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")
    seller = db["seller"].find_one({"email": body.email.strip().lower()})
    if not seller or not verify_password(body.password, seller.get("password_hash")):
        log.info("Failed seller login for %s", body.email)
        raise AuthError("Invalid credentials")
    if not seller.get("is_active", True):
        raise ForbiddenError("Your seller account is inactive. Please contact support.")
    db["seller"].update_one({"_id": seller["_id"]}, {"$set": {"last_login": utcnow()}})
    return success(seller_session(seller), message="Login successful")


@router.post("/auth/logout")
def logout(seller=Depends(get_current_seller)):
    log.info("Seller %s logged out", seller["id"])
    return success(message="Logged out successfully")


@router.get("/auth/profile")
def get_profile(seller=Depends(get_current_seller)):
    return success({"seller": seller_public_data(seller)})


@router.put("/auth/profile")
def update_profile(body: SellerProfileBody, seller=Depends(get_current_seller), db: Database = Depends(get_db)):
    update = body.model_dump(exclude_none=True)
    if not update:
        raise ValidationError("No changes provided")
    update["updated_at"] = utcnow()
    oid = to_object_id(seller["id"])
    db["seller"].update_one({"_id": oid}, {"$set": update})
    updated = serialize_doc(db["seller"].find_one({"_id": oid}))
    return success({"seller": seller_public_data(updated)}, message="Profile updated successfully")


# ----------------------- Inventory -----------------------
# The seller dashboard reaches inventory and orders under /auth as well.
@router.get("/products")
@router.get("/auth/products")
def my_products(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    seller=Depends(get_current_seller),
    db: Database = Depends(get_db),
):
    filt = {"seller_id": seller["id"]}
    cursor = db["product"].find(filt).sort("created_at", DESCENDING).skip((page - 1) * limit).limit(limit)
    products = [public_product(p) for p in cursor]
    total = db["product"].count_documents(filt)
    return success({"products": products, "pagination": pagination(total, page, limit)})


router.post("/auth/products", status_code=201)(create_product)
router.put("/auth/products/{product_id}")(update_product)
router.delete("/auth/products/{product_id}")(delete_product)


# ----------------------- Orders -----------------------
@router.get("/orders")
@router.get("/auth/orders")
def my_orders(status: Optional[str] = None, seller=Depends(get_current_seller), db: Database = Depends(get_db)):
    filt = {"seller_ids": seller["id"]}
    if status and status != "all":
        filt["status"] = normalize_status(status)
    orders = list(db["order"].find(filt).sort("created_at", DESCENDING).limit(100))
    customers = _customers(db, orders)
    views = [seller_order_view(o, seller["id"], customers) for o in orders]
    return success({"orders": views, "count": len(views)})


@router.put("/orders/{order_id}/status")
@router.put("/auth/orders/{order_id}/status")
def update_order_status(order_id: str, body: OrderStatusBody, seller=Depends(get_current_seller),
                        db: Database = Depends(get_db)):
    order = seller_update_status(db, seller, order_id, body.status)
    return success({"order": order}, message="Order status updated")


@router.get("/stats")
def stats(seller=Depends(get_current_seller), db: Database = Depends(get_db)):
    seller_id = seller["id"]
    product_count = db["product"].count_documents({"seller_id": seller_id})
    low_stock = [
        public_product(p)
        for p in db["product"].find({"seller_id": seller_id, "stock": {"$lte": LOW_STOCK_THRESHOLD}})
    ]

    revenue = 0.0
    units = 0
    status_counts = {}
    for order in db["order"].find({"seller_ids": seller_id}):
        status = order.get("status", "pending")
        status_counts[status] = status_counts.get(status, 0) + 1
        if status == "cancelled":
            continue
        for item in order.get("items", []):
            if item.get("seller_id") == seller_id:
                revenue += item["price"] * item["quantity"]
                units += item["quantity"]

    return success({
        "products": product_count,
        "orders": sum(status_counts.values()),
        "revenue": round(revenue, 2),
        "units_sold": units,
        "status_counts": status_counts,
        "low_stock": low_stock,
    })
