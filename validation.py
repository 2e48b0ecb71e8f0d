"""
Field rules shared by every form that reaches the API.

Registration, profile, seller onboarding and password screens all validate
against these patterns; the server copy is the one that decides.
"""
import re

MOBILE_RE = re.compile(r"^\d{10}$")
ZIP_CODE_RE = re.compile(r"^\d{6}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
GST_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
ACCOUNT_NUMBER_RE = re.compile(r"^\d{9,18}$")

PASSWORD_SPECIALS = "@$!%*?&#"
STRONG_PASSWORD_RE = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&#])[A-Za-z\d@$!%*?&#]{8,}$"
)
MIN_PASSWORD_LENGTH = 6
# bcrypt only hashes the first 72 bytes
MAX_PASSWORD_BYTES = 72


def is_valid_mobile(value: str) -> bool:
    return bool(value) and bool(MOBILE_RE.match(value))


def is_valid_email(value: str) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value))


def is_valid_zip_code(value: str) -> bool:
    return bool(value) and bool(ZIP_CODE_RE.match(value))


def is_valid_pan(value: str) -> bool:
    return bool(value) and bool(PAN_RE.match(value.upper()))


def is_valid_ifsc(value: str) -> bool:
    return bool(value) and bool(IFSC_RE.match(value.upper()))


def is_valid_gst(value: str) -> bool:
    return bool(value) and bool(GST_RE.match(value.upper()))


def is_strong_password(value: str) -> bool:
    return bool(value) and bool(STRONG_PASSWORD_RE.match(value))


def password_strength(value: str) -> int:
    """Score 0-4: one point each for upper, lower, digit and special characters."""
    if not value:
        return 0
    score = 0
    if re.search(r"[A-Z]", value):
        score += 1
    if re.search(r"[a-z]", value):
        score += 1
    if re.search(r"[0-9]", value):
        score += 1
    if any(c in PASSWORD_SPECIALS for c in value):
        score += 1
    return score


# Pydantic field validators raise ValueError; these wrap the checks above.

def check_mobile(value):
    if value is None:
        return value
    value = value.strip()
    if not is_valid_mobile(value):
        raise ValueError("Mobile must be exactly 10 digits")
    return value


def check_zip_code(value):
    if value is None or value == "":
        return value
    value = value.strip()
    if not is_valid_zip_code(value):
        raise ValueError("ZIP code must be exactly 6 digits")
    return value


def check_password(value):
    if value is None or len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes")
    return value


def check_strong_password(value):
    if not is_strong_password(value) or len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(
            "Password must be at least 8 characters and contain upper and lower case "
            f"letters, a number and one of {PASSWORD_SPECIALS}"
        )
    return value


def check_pan(value):
    if value is None or value == "":
        return None
    value = value.strip().upper()
    if not is_valid_pan(value):
        raise ValueError("Invalid PAN number")
    return value


def check_ifsc(value):
    if value is None or value == "":
        return None
    value = value.strip().upper()
    if not is_valid_ifsc(value):
        raise ValueError("Invalid IFSC code")
    return value


def check_gst(value):
    if value is None or value == "":
        return None
    value = value.strip().upper()
    if not is_valid_gst(value):
        raise ValueError("Invalid GST number")
    return value


def check_account_number(value):
    if value is None or value == "":
        return None
    value = value.strip()
    if not ACCOUNT_NUMBER_RE.match(value):
        raise ValueError("Account number must be 9 to 18 digits")
    return value
