"""
Database Schemas for the LUXORA marketplace

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from validation import check_account_number, check_ifsc, check_mobile, check_zip_code

Role = Literal["user", "seller", "admin"]
BusinessType = Literal["Individual", "Partnership", "Company"]
PaymentMethod = Literal["card", "cod", "upi", "wallet"]
PaymentStatus = Literal["pending", "completed", "failed"]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
FINAL_ORDER_STATUSES = ("delivered", "cancelled")

PAYMENT_METHOD_ALIASES = {
    "card": "card",
    "credit-card": "card",
    "debit-card": "card",
    "cod": "cod",
    "cash on delivery": "cod",
    "cash_on_delivery": "cod",
    "cash-on-delivery": "cod",
    "upi": "upi",
    "wallet": "wallet",
}


def normalize_payment_method(value: str) -> str:
    method = PAYMENT_METHOD_ALIASES.get((value or "").strip().lower())
    if method is None:
        raise ValueError("Payment method must be one of card, cod, upi, wallet")
    return method


class Address(BaseModel):
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "India"

    @field_validator("zip_code")
    @classmethod
    def validate_zip_code(cls, value):
        return check_zip_code(value)


class ShippingAddress(Address):
    full_name: str = Field(..., min_length=1)
    phone: str
    address_line1: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value):
        return check_mobile(value)


class User(BaseModel):
    name: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    mobile: str
    password_hash: str = Field(..., description="BCrypt hash of the user's password")
    role: Role = "user"
    address: Address = Field(default_factory=Address)
    profile_image: Optional[str] = None
    is_active: bool = True
    is_verified: bool = False
    reset_password_token: Optional[str] = None
    reset_password_expiry: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, value):
        return check_mobile(value)


class BankDetails(BaseModel):
    account_number: Optional[str] = None
    account_holder: Optional[str] = None
    bank_name: Optional[str] = None
    ifsc_code: Optional[str] = None

    @field_validator("account_number")
    @classmethod
    def validate_account_number(cls, value):
        return check_account_number(value)

    @field_validator("ifsc_code")
    @classmethod
    def validate_ifsc_code(cls, value):
        return check_ifsc(value)


class Seller(BaseModel):
    business_name: str = Field(..., min_length=2)
    business_type: Optional[BusinessType] = None
    owner_name: Optional[str] = None
    email: EmailStr
    mobile: Optional[str] = None
    password_hash: str
    role: Literal["seller"] = "seller"
    business_address: Address = Field(default_factory=Address)
    gst_number: Optional[str] = None
    pan_number: Optional[str] = None
    bank_details: BankDetails = Field(default_factory=BankDetails)
    is_approved: bool = False
    is_active: bool = True
    rating: float = Field(0, ge=0, le=5)
    last_login: Optional[datetime] = None


class Review(BaseModel):
    user_id: str
    name: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    discount: float = Field(0, ge=0, le=100)
    category: str = Field(..., min_length=1)
    brand: Optional[str] = None
    images: List[str] = []
    stock: int = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)
    num_reviews: int = Field(0, ge=0)
    featured: bool = False
    is_active: bool = True
    seller_id: str
    reviews: List[Review] = []


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = []


class Wishlist(BaseModel):
    user_id: str
    product_ids: List[str] = []


class OrderItem(BaseModel):
    product_id: str
    seller_id: Optional[str] = None
    name: str
    image: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class Order(BaseModel):
    user_id: str
    seller_ids: List[str] = []
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = "cod"
    payment_status: PaymentStatus = "pending"
    payment_intent_id: Optional[str] = None
    payment_verified: bool = False
    status: OrderStatus = "pending"
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class Payment(BaseModel):
    order_id: str
    user_id: str
    amount: float = Field(..., ge=0)
    currency: str = "INR"
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    status: Literal["pending", "success", "failed"] = "pending"
    verified: bool = False


USER_PRIVATE_FIELDS = ("password_hash", "reset_password_token", "reset_password_expiry")
SELLER_PRIVATE_FIELDS = ("password_hash", "gst_number", "pan_number", "bank_details")


def public_user(doc: dict) -> dict:
    return {k: v for k, v in doc.items() if k not in USER_PRIVATE_FIELDS}


def seller_public_data(doc: dict) -> dict:
    """Seller projection safe for any external response: no credentials, tax ids or bank details."""
    return {k: v for k, v in doc.items() if k not in SELLER_PRIVATE_FIELDS}
