import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
from database import close_db, ensure_indexes, get_db, get_optional_db
from errors import register_exception_handlers
from routers import admin, auth, cart, orders, password, payment, products, seller, success, user, wishlist
from seed import seed_demo_data

log = logging.getLogger("luxora.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.setup_logging()
    if config.MONGODB_URI:
        try:
            ensure_indexes(get_db())
        except PyMongoError as exc:
            log.error("Could not ensure indexes: %s", exc)
    else:
        log.warning("MONGODB_URI is not set; database routes will fail until it is")
    log.info("LUXORA API started")
    yield
    close_db()


app = FastAPI(title="LUXORA Marketplace API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for module in (auth, user, password, products, cart, wishlist, orders, payment, seller, admin):
    app.include_router(module.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    log.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed)
    return response


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _database_state(db: Optional[Database]) -> str:
    if db is None:
        return "Disconnected"
    try:
        db.command("ping")
        return "Connected"
    except PyMongoError:
        return "Disconnected"


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return success(message="LUXORA API Server Running", timestamp=_now_iso())


@app.get("/api")
def api_root():
    return success(message="API is working!", timestamp=_now_iso())


@app.get("/api/health")
def health(db: Optional[Database] = Depends(get_optional_db)):
    return success(status="ok", database=_database_state(db), timestamp=_now_iso())


@app.get("/test")
def test_database(db: Optional[Database] = Depends(get_optional_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.MONGODB_URI else "❌ Not Set",
        "stripe_key": "✅ Set" if config.STRIPE_SECRET_KEY else "❌ Not Set",
        "database_name": config.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": [],
    }
    if db is None:
        return response
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----------------------- Seed Demo Data -----------------------
@app.post("/api/seed")
def seed(db: Database = Depends(get_db)):
    created = seed_demo_data(db)
    return success({"seeded": created, "products": db["product"].count_documents({})})


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", config.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
