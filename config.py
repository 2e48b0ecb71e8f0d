import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("luxora")

DEV_JWT_SECRET = "devsecret"


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


JWT_SECRET = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
JWT_ALGO = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

MONGODB_URI = os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "luxora")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
RESET_TOKEN_TTL_MINUTES = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "60"))
SELLER_APPROVAL_REQUIRED = _flag("SELLER_APPROVAL_REQUIRED")
PORT = int(os.getenv("PORT", "8000"))


def setup_logging():
    """Configures the application logger."""
    log.setLevel(LOG_LEVEL)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s"
        ))
        log.addHandler(handler)
    if JWT_SECRET == DEV_JWT_SECRET:
        log.warning("JWT_SECRET is not set; using the development secret")
