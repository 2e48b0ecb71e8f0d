"""
MongoDB access for the LUXORA API.

The client is created once per process, on first use, and shared by every
request. Handlers receive the database through the ``get_db`` dependency so
tests can swap in an in-memory client.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson.objectid import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import config

log = logging.getLogger("luxora.database")

_client: Optional[MongoClient] = None
_lock = threading.Lock()


def init_db(client: Optional[MongoClient] = None) -> Database:
    """Install ``client`` (or connect to MONGODB_URI) as the process-wide client."""
    global _client
    with _lock:
        if client is not None:
            _client = client
        elif _client is None:
            if not config.MONGODB_URI:
                raise RuntimeError("MONGODB_URI environment variable is not set")
            log.info("Connecting to MongoDB database %s", config.DATABASE_NAME)
            _client = MongoClient(
                config.MONGODB_URI,
                serverSelectionTimeoutMS=10000,
                socketTimeoutMS=30000,
            )
        return _client[config.DATABASE_NAME]


def get_db() -> Database:
    if _client is not None:
        return _client[config.DATABASE_NAME]
    return init_db()


def get_optional_db() -> Optional[Database]:
    """Like get_db, but None when no database is configured."""
    try:
        return get_db()
    except RuntimeError as exc:
        log.warning("Database unavailable: %s", exc)
        return None


def close_db():
    global _client
    with _lock:
        if _client is not None:
            _client.close()
            _client = None


def ensure_indexes(db: Database):
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["user"].create_index([("mobile", ASCENDING)], unique=True)
    db["seller"].create_index([("email", ASCENDING)], unique=True)
    db["cart"].create_index([("user_id", ASCENDING)], unique=True)
    db["wishlist"].create_index([("user_id", ASCENDING)], unique=True)
    db["order"].create_index([("user_id", ASCENDING), ("created_at", ASCENDING)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def create_document(db: Database, collection_name: str, data: Any) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict] = None, limit: Optional[int] = None):
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    return {k: serialize_value(v) for k, v in doc.items()}


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB returns naive UTC datetimes; make them comparable with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
