"""Form field validators. Each returns (is_valid, message)."""
import re
from typing import Dict, Optional, Tuple

from errors import ValidationFailed

Result = Tuple[bool, str]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INDIAN_MOBILE_RE = re.compile(r"^(\+91|91|0)?[6-9]\d{9}$")
NAME_RE = re.compile(r"^[a-zA-Z\s\-'.]+$")


def validate_email(email: Optional[str]) -> Result:
    if not email:
        return False, "Email is required"
    if not EMAIL_RE.match(email):
        return False, "Please enter a valid email address"
    domain = email.split("@")[1]
    if ".." in domain:
        return False, "Email domain contains consecutive dots"
    return True, ""


def validate_phone(phone: Optional[str]) -> Result:
    if not phone:
        return False, "Phone number is required"
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 10:
        return False, "Phone number must be at least 10 digits"
    if len(digits) > 12:
        return False, "Phone number cannot exceed 12 digits"
    if not INDIAN_MOBILE_RE.match(digits):
        return False, "Please enter a valid Indian phone number (starting with 6-9)"
    return True, ""


def validate_name(name: Optional[str]) -> Result:
    if not name or not name.strip():
        return False, "Name is required"
    if len(name.strip()) < 2:
        return False, "Name must be at least 2 characters long"
    if len(name.strip()) > 50:
        return False, "Name cannot exceed 50 characters"
    if not NAME_RE.match(name):
        return False, "Name can only contain letters, spaces, hyphens, and apostrophes"
    return True, ""


def validate_password(password: Optional[str]) -> Result:
    if not password:
        return False, "Password is required"
    if len(password) < 6:
        return False, "Password must be at least 6 characters long"
    if len(password) > 128:
        return False, "Password cannot exceed 128 characters"
    if not re.search(r"[a-zA-Z]", password) or not re.search(r"\d", password):
        return False, "Password must contain at least one letter and one number"
    return True, ""


def format_phone_number(phone: str) -> str:
    digits = re.sub(r"\D", "", phone)
    if len(digits) >= 10:
        last = digits[-10:]
        return f"+91 {last[:5]} {last[5:]}"
    return phone


def format_email_for_display(email: str) -> str:
    return email.lower().strip()


def collect_errors(**checks: Result) -> Dict[str, str]:
    """collect_errors(email=validate_email(x), ...) -> {field: message} for failures."""
    return {field: message for field, (ok, message) in checks.items() if not ok}


def ensure_valid(**checks: Result) -> None:
    errors = collect_errors(**checks)
    if errors:
        raise ValidationFailed(errors)
