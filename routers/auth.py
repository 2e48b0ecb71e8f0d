import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, serialize_doc, utcnow
from errors import AuthError, ConflictError, ForbiddenError, ValidationError
from routers import success
from schemas import User as UserSchema, public_user
from security import create_token, get_current_user, hash_password, verify_password
from validation import check_mobile, check_password

log = logging.getLogger("luxora.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ----------------------- Models -----------------------
class RegisterBody(BaseModel):
    name: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    mobile: str
    password: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        return value.strip()

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, value):
        return check_mobile(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value):
        return check_password(value)


class LoginBody(BaseModel):
    email_or_mobile: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    password: str

    @property
    def identifier(self) -> str:
        return (self.email_or_mobile or self.email or self.mobile or "").strip()


# ----------------------- Helpers -----------------------
def session_payload(user: dict) -> dict:
    """Token plus public profile for a freshly authenticated user document."""
    suser = public_user(serialize_doc(user))
    token = create_token(suser["id"], "customer", suser.get("role", "user"))
    return {"token": token, "user": suser}


def register_user(db: Database, body: RegisterBody) -> dict:
    email = body.email.lower()
    existing = db["user"].find_one({"$or": [{"email": email}, {"mobile": body.mobile}]})
    if existing:
        field = "Email" if existing.get("email") == email else "Mobile number"
        raise ConflictError(f"{field} already registered")

    user = UserSchema(
        name=body.name,
        email=email,
        mobile=body.mobile,
        password_hash=hash_password(body.password),
    )
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise ConflictError("User already exists")
    log.info("Registered user %s", user_id)
    return session_payload(db["user"].find_one({"email": email}))


def login_user(db: Database, body: LoginBody) -> dict:
    identifier = body.identifier
    if not identifier or not body.password:
        raise ValidationError("Email/mobile and password are required")

    user = db["user"].find_one({"$or": [{"email": identifier.lower()}, {"mobile": identifier}]})
    if not user or not verify_password(body.password, user.get("password_hash")):
        log.info("Failed login for %s", identifier)
        raise AuthError("Invalid credentials")
    if not user.get("is_active", True):
        raise ForbiddenError("Your account has been deactivated")

    now = utcnow()
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    return session_payload(user)


# ----------------------- Routes -----------------------
@router.post("/register", status_code=201)
def register(body: RegisterBody, db: Database = Depends(get_db)):
    return success(register_user(db, body), message="User registered successfully")


@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    return success(login_user(db, body), message="Login successful")


@router.get("/me")
def me(user=Depends(get_current_user)):
    return success({"user": public_user(user)})
