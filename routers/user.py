import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database

from database import get_db, serialize_doc, to_object_id, utcnow
from errors import ConflictError, ValidationError
from routers import success
from routers.auth import LoginBody, RegisterBody, login_user, register_user
from schemas import Address, public_user
from security import get_current_user
from validation import check_mobile

log = logging.getLogger("luxora.user")

router = APIRouter(prefix="/api/user", tags=["user"])


class ProfileUpdateBody(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=50)
    mobile: Optional[str] = None
    address: Optional[Address] = None
    profile_image: Optional[str] = None

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, value):
        return check_mobile(value)


@router.post("/register", status_code=201)
def register(body: RegisterBody, db: Database = Depends(get_db)):
    return success(register_user(db, body), message="User registered successfully")


@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    return success(login_user(db, body), message="Login successful")


@router.post("/logout")
def logout(user=Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy.
    log.info("User %s logged out", user["id"])
    return success(message="Logged out successfully")


@router.get("/profile")
def get_profile(user=Depends(get_current_user)):
    return success({"user": public_user(user)})


@router.put("/profile")
def update_profile(body: ProfileUpdateBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    update = body.model_dump(exclude_none=True)
    if not update:
        raise ValidationError("No changes provided")

    oid = to_object_id(user["id"])
    if "mobile" in update and db["user"].find_one({"mobile": update["mobile"], "_id": {"$ne": oid}}):
        raise ConflictError("Mobile number already registered")

    update["updated_at"] = utcnow()
    db["user"].update_one({"_id": oid}, {"$set": update})
    updated = serialize_doc(db["user"].find_one({"_id": oid}))
    return success({"user": public_user(updated)}, message="Profile updated successfully")


@router.delete("/profile")
def delete_account(user=Depends(get_current_user), db: Database = Depends(get_db)):
    db["user"].delete_one({"_id": to_object_id(user["id"])})
    db["cart"].delete_one({"user_id": user["id"]})
    db["wishlist"].delete_one({"user_id": user["id"]})
    log.info("Deleted account %s", user["id"])
    return success(message="Account deleted")
