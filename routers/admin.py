import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo.database import Database

from database import get_db, get_documents, serialize_doc, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from routers import success
from schemas import public_user, seller_public_data
from security import require_roles

log = logging.getLogger("luxora.admin")

router = APIRouter(prefix="/api/admin", tags=["admin"])

admin_only = require_roles("admin")


class ApprovalBody(BaseModel):
    is_approved: bool = True


class ActiveBody(BaseModel):
    is_active: bool


def _set_flag(db: Database, collection: str, account_id: str, update: dict) -> dict:
    oid = to_object_id(account_id)
    if oid is None:
        raise ValidationError("Invalid id")
    update["updated_at"] = utcnow()
    result = db[collection].update_one({"_id": oid}, {"$set": update})
    if result.matched_count == 0:
        raise NotFoundError(f"{collection.capitalize()} not found")
    return serialize_doc(db[collection].find_one({"_id": oid}))


@router.get("/stats")
def admin_stats(principal=Depends(admin_only), db: Database = Depends(get_db)):
    return success({
        "users": db["user"].count_documents({}),
        "sellers": db["seller"].count_documents({}),
        "pending_sellers": db["seller"].count_documents({"is_approved": False}),
        "products": db["product"].count_documents({}),
        "orders": db["order"].count_documents({}),
    })


@router.get("/sellers")
def list_sellers(approved: Optional[bool] = None, principal=Depends(admin_only), db: Database = Depends(get_db)):
    filt = {} if approved is None else {"is_approved": approved}
    sellers = [seller_public_data(serialize_doc(s)) for s in get_documents(db, "seller", filt)]
    return success({"sellers": sellers, "count": len(sellers)})


@router.put("/sellers/{seller_id}/approve")
def approve_seller(seller_id: str, body: Optional[ApprovalBody] = None, principal=Depends(admin_only),
                   db: Database = Depends(get_db)):
    approved = body.is_approved if body else True
    seller = _set_flag(db, "seller", seller_id, {"is_approved": approved})
    log.info("Admin %s set seller %s approval to %s", principal.id, seller_id, approved)
    return success({"seller": seller_public_data(seller)}, message="Seller updated")


@router.put("/users/{user_id}/status")
def set_user_status(user_id: str, body: ActiveBody, principal=Depends(admin_only), db: Database = Depends(get_db)):
    if user_id == principal.id and not body.is_active:
        raise ValidationError("Admins cannot deactivate themselves")
    user = _set_flag(db, "user", user_id, {"is_active": body.is_active})
    log.info("Admin %s set user %s active=%s", principal.id, user_id, body.is_active)
    return success({"user": public_user(user)}, message="User updated")
