import os

os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("MONGODB_URI", None)
os.environ.pop("DATABASE_URL", None)

import mongomock
import pytest
from bson.objectid import ObjectId
from fastapi.testclient import TestClient

from database import create_document, ensure_indexes, get_db, get_optional_db
from main import app
from schemas import Product as ProductSchema
from security import hash_password

SHIPPING_ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "9876543210",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zip_code": "560001",
}

SELLER_PASSWORD = "Seller@123"


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    database = client["luxora_test"]
    ensure_indexes(database)
    yield database
    client.close()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_optional_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client, name="Asha Rao", email="asha@mail.com", mobile="9876543210", password="secret123"):
    return client.post("/api/auth/register", json={
        "name": name, "email": email, "mobile": mobile, "password": password,
    })


def register_seller(client, email="store@mail.com", business_name="Asha Stores", **extra):
    return client.post("/api/seller/auth/register", json={
        "business_name": business_name, "email": email, "password": SELLER_PASSWORD, **extra,
    })


@pytest.fixture
def user_token(client):
    return register(client).json()["data"]["token"]


@pytest.fixture
def other_user_token(client):
    return register(client, name="Ravi Kumar", email="ravi@mail.com", mobile="9123456780").json()["data"]["token"]


@pytest.fixture
def seller(client):
    return register_seller(client).json()["data"]


@pytest.fixture
def seller_token(seller):
    return seller["token"]


@pytest.fixture
def admin_token(client, db):
    create_document(db, "user", {
        "name": "Site Admin",
        "email": "admin@mail.com",
        "mobile": "9000000000",
        "password_hash": hash_password("admin123"),
        "role": "admin",
        "is_active": True,
    })
    resp = client.post("/api/auth/login", json={"email_or_mobile": "admin@mail.com", "password": "admin123"})
    return resp.json()["data"]["token"]


def make_product(db, seller_id=None, **overrides):
    fields = {
        "name": "Wireless Headphones",
        "description": "Noise cancelling over-ear headphones",
        "price": 100,
        "category": "electronics",
        "stock": 5,
        "seller_id": seller_id or str(ObjectId()),
    }
    fields.update(overrides)
    return create_document(db, "product", ProductSchema(**fields))


def stock_of(db, product_id):
    return db["product"].find_one({"_id": ObjectId(product_id)})["stock"]
