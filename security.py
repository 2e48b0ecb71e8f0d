import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional, Union

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

import config
from database import get_db, serialize_doc, to_object_id
from errors import ApiError, AuthError, ForbiddenError, NotFoundError

log = logging.getLogger("luxora.security")

security = HTTPBearer(auto_error=False)


# ----------------------- Passwords -----------------------
def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# ----------------------- Tokens -----------------------
def create_token(subject_id: str, kind: str, role: str) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRE_DAYS)
    payload = {"id": subject_id, "kind": kind, "role": role, "exp": exp}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")


# ----------------------- Principals -----------------------
@dataclass
class CustomerPrincipal:
    account: dict
    kind: Literal["customer"] = "customer"

    @property
    def id(self) -> str:
        return self.account["id"]

    @property
    def role(self) -> str:
        return self.account.get("role", "user")


@dataclass
class SellerPrincipal:
    account: dict
    kind: Literal["seller"] = "seller"

    @property
    def id(self) -> str:
        return self.account["id"]

    @property
    def role(self) -> str:
        return "seller"


Principal = Union[CustomerPrincipal, SellerPrincipal]


def resolve_principal(db: Database, payload: dict) -> Principal:
    """Load the account a decoded token points at and tag it as customer or seller."""
    oid = to_object_id(payload.get("id"))
    if oid is None:
        raise AuthError("Invalid token payload")

    if payload.get("kind") == "seller":
        seller = db["seller"].find_one({"_id": oid})
        if not seller:
            raise NotFoundError("Seller not found")
        if not seller.get("is_active", True):
            raise ForbiddenError("Your seller account is inactive. Please contact support.")
        return SellerPrincipal(serialize_doc(seller))

    user = db["user"].find_one({"_id": oid})
    if not user:
        raise NotFoundError("User not found")
    if not user.get("is_active", True):
        raise ForbiddenError("Your account has been deactivated")
    return CustomerPrincipal(serialize_doc(user))


def get_principal(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                  db: Database = Depends(get_db)) -> Principal:
    if credentials is None:
        log.info("Rejected request without bearer token")
        raise AuthError("Not authorized to access this route")
    payload = decode_token(credentials.credentials)
    return resolve_principal(db, payload)


def get_current_user(principal: Principal = Depends(get_principal)) -> dict:
    if not isinstance(principal, CustomerPrincipal):
        raise ForbiddenError("Invalid token type. User token required.")
    return principal.account


def get_current_seller(principal: Principal = Depends(get_principal)) -> dict:
    if not isinstance(principal, SellerPrincipal):
        raise ForbiddenError("Invalid token type. Seller token required.")
    return principal.account


def require_roles(*roles: str):
    """Dependency factory: the authenticated principal must hold one of ``roles``."""
    def checker(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise ForbiddenError(f"Not authorized. Required roles: {', '.join(roles)}")
        return principal
    return checker


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                      db: Database = Depends(get_db)) -> Optional[dict]:
    if credentials is None:
        return None
    try:
        principal = resolve_principal(db, decode_token(credentials.credentials))
    except ApiError as exc:
        log.info("Ignoring unusable optional token: %s", exc.message)
        return None
    if not isinstance(principal, CustomerPrincipal):
        return None
    return principal.account
