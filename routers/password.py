import hashlib
import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, field_validator
from pymongo.database import Database

import config
from database import as_utc, get_db, to_object_id, utcnow
from errors import AuthError, NotFoundError, ValidationError
from routers import success
from security import get_current_user, hash_password, verify_password
from validation import check_password

log = logging.getLogger("luxora.password")

router = APIRouter(prefix="/api/password", tags=["password"])


class ForgotBody(BaseModel):
    email: EmailStr


class ResetBody(BaseModel):
    new_password: str
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value):
        return check_password(value)


class ChangeBody(BaseModel):
    old_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value):
        return check_password(value)


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@router.post("/forgot")
def forgot_password(body: ForgotBody, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": body.email.lower()})
    if not user:
        raise NotFoundError("User not found")

    reset_token = secrets.token_hex(20)
    expiry = utcnow() + timedelta(minutes=config.RESET_TOKEN_TTL_MINUTES)
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"reset_password_token": _digest(reset_token), "reset_password_expiry": expiry}},
    )
    log.info("Issued password reset token for user %s", user["_id"])
    # No mailer is configured, so the token goes back to the caller.
    return success({"reset_token": reset_token, "expires_at": expiry.isoformat()},
                   message="Reset link sent to email")


@router.post("/reset/{token}")
def reset_password(token: str, body: ResetBody, db: Database = Depends(get_db)):
    if body.new_password != body.confirm_password:
        raise ValidationError("Passwords do not match")

    user = db["user"].find_one({"reset_password_token": _digest(token)})
    expiry = as_utc(user.get("reset_password_expiry")) if user else None
    if not user or expiry is None or expiry <= utcnow():
        raise ValidationError("Invalid or expired token")

    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password_hash": hash_password(body.new_password), "updated_at": utcnow()},
            "$unset": {"reset_password_token": "", "reset_password_expiry": ""},
        },
    )
    log.info("Password reset for user %s", user["_id"])
    return success(message="Password reset successfully")


@router.post("/change")
def change_password(body: ChangeBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    if not verify_password(body.old_password, user.get("password_hash")):
        raise AuthError("Current password is incorrect")
    db["user"].update_one(
        {"_id": to_object_id(user["id"])},
        {"$set": {"password_hash": hash_password(body.new_password), "updated_at": utcnow()}},
    )
    log.info("Password changed for user %s", user["id"])
    return success(message="Password changed successfully")
