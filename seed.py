"""Demo catalog for local development: one approved seller, an admin and a few products."""
import logging

from pymongo.database import Database

from database import create_document
from schemas import Product as ProductSchema, Seller as SellerSchema, User as UserSchema
from security import hash_password

log = logging.getLogger("luxora.seed")

DEMO_SELLER_EMAIL = "store@luxora.dev"
DEMO_ADMIN_EMAIL = "admin@luxora.dev"

DEMO_PRODUCTS = [
    {
        "name": "Premium Wireless Headphones",
        "brand": "AudioTech",
        "description": "High-quality wireless headphones with noise cancellation and superior sound quality.",
        "price": 299,
        "original_price": 399,
        "discount": 25,
        "category": "electronics",
        "images": ["https://images.unsplash.com/photo-1505740420928-5e560c06d30e"],
        "stock": 50,
        "rating": 4.5,
        "num_reviews": 120,
        "featured": True,
    },
    {
        "name": "Smart Watch Pro",
        "brand": "TechWear",
        "description": "Feature-rich smartwatch with health tracking, GPS, and long battery life.",
        "price": 399,
        "original_price": 499,
        "discount": 20,
        "category": "electronics",
        "images": ["https://images.unsplash.com/photo-1523275335684-37898b6baf30"],
        "stock": 30,
        "rating": 4.7,
        "num_reviews": 85,
    },
    {
        "name": "Designer Leather Jacket",
        "brand": "StyleCo",
        "description": "Premium genuine leather jacket with modern design and perfect fit.",
        "price": 249,
        "original_price": 349,
        "discount": 29,
        "category": "clothing",
        "images": ["https://images.unsplash.com/photo-1551028719-00167b16eac5"],
        "stock": 25,
        "rating": 4.6,
        "num_reviews": 65,
    },
    {
        "name": "Running Shoes Ultra",
        "brand": "SpeedFit",
        "description": "Lightweight running shoes with superior cushioning and support.",
        "price": 129,
        "original_price": 179,
        "discount": 28,
        "category": "sports",
        "images": ["https://images.unsplash.com/photo-1542291026-7eec264c27ff"],
        "stock": 100,
        "rating": 4.8,
        "num_reviews": 200,
        "featured": True,
    },
    {
        "name": "Mechanical Keyboard",
        "brand": "Keychron",
        "description": "Hot-swappable RGB keyboard.",
        "price": 79,
        "category": "electronics",
        "images": ["https://images.unsplash.com/photo-1516382799247-87df95d790b5"],
        "stock": 30,
        "rating": 4.3,
        "num_reviews": 40,
    },
    {
        "name": "Ceramic Coffee Mug Set",
        "brand": "HomeNest",
        "description": "Set of four handmade ceramic mugs.",
        "price": 39,
        "category": "home",
        "images": ["https://images.unsplash.com/photo-1514228742587-6b1558fcca3d"],
        "stock": 60,
        "rating": 4.2,
        "num_reviews": 18,
    },
]


def seed_demo_data(db: Database) -> dict:
    """Insert demo accounts and products; does nothing for collections that already hold data."""
    created = {"sellers": 0, "admins": 0, "products": 0}

    seller = db["seller"].find_one({"email": DEMO_SELLER_EMAIL})
    if not seller:
        create_document(db, "seller", SellerSchema(
            business_name="Luxora Demo Store",
            business_type="Company",
            owner_name="Demo Owner",
            email=DEMO_SELLER_EMAIL,
            mobile="9876543210",
            password_hash=hash_password("Seller@123"),
            is_approved=True,
        ))
        seller = db["seller"].find_one({"email": DEMO_SELLER_EMAIL})
        created["sellers"] = 1

    if db["user"].count_documents({"role": "admin"}) == 0:
        create_document(db, "user", UserSchema(
            name="Admin",
            email=DEMO_ADMIN_EMAIL,
            mobile="9000000000",
            password_hash=hash_password("admin123"),
            role="admin",
            is_verified=True,
        ))
        created["admins"] = 1

    if db["product"].count_documents({}) == 0:
        for p in DEMO_PRODUCTS:
            create_document(db, "product", ProductSchema(**p, seller_id=str(seller["_id"])))
        created["products"] = len(DEMO_PRODUCTS)

    log.info("Seeded demo data: %s", created)
    return created


if __name__ == "__main__":
    from config import setup_logging
    from database import ensure_indexes, init_db

    setup_logging()
    database = init_db()
    ensure_indexes(database)
    print(seed_demo_data(database))
