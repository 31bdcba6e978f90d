"""
Authentication and user profiles

Identities live in `accounts` (email + bcrypt hash) and profiles in `users`,
both keyed by the same uid. Sign-up writes the two documents one after the
other without a transaction; sign-in recreates a missing profile with the
default role, so an identity orphaned by a crash in between heals on its next
login.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

import config
from database import (
    as_utc,
    create_document,
    generate_reference,
    get_or_404,
    new_id,
    now,
    serialize_doc,
    versioned_update,
)
from errors import (
    AccountDisabled,
    EmailAlreadyRegistered,
    InvalidCredentials,
    NotAuthenticated,
    TooManyAttempts,
)
from schemas import Account, UserProfile
from validation import (
    ensure_valid,
    format_email_for_display,
    format_phone_number,
    validate_email,
    validate_name,
    validate_password,
    validate_phone,
)

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ROLE_LANDING_PAGES = {
    "admin": "/admin",
    "doctor": "/doctor",
    "merchant": "/merchant",
    "user": "/dashboard",
}

PROFILE_FIELDS = {
    "display_name",
    "phone_number",
    "first_name",
    "last_name",
    "address",
    "date_of_birth",
    "gender",
    "specialization",
}

# Doctors whose profiles predate doctor_id assignment
DOCTOR_EMAIL_CODES = {
    "dr.sharma@raghuvanshi.com": "DOC001",
    "dr.patel@raghuvanshi.com": "DOC002",
    "dr.singh@raghuvanshi.com": "DOC003",
    "dr.gupta@raghuvanshi.com": "DOC004",
    "dr.kumar@raghuvanshi.com": "DOC005",
}
DEFAULT_DOCTOR_CODE = "DOC001"

TEST_DOCTORS = [
    {
        "email": "dr.sharma@raghuvanshi.com",
        "display_name": "Dr. Sarah Sharma",
        "first_name": "Sarah",
        "last_name": "Sharma",
        "specialization": "General Medicine",
        "phone_number": "+91 9876543220",
    },
    {
        "email": "dr.patel@raghuvanshi.com",
        "display_name": "Dr. Michael Patel",
        "first_name": "Michael",
        "last_name": "Patel",
        "specialization": "Internal Medicine",
        "phone_number": "+91 9876543221",
    },
    {
        "email": "dr.singh@raghuvanshi.com",
        "display_name": "Dr. Emily Singh",
        "first_name": "Emily",
        "last_name": "Singh",
        "specialization": "Dentistry",
        "phone_number": "+91 9876543222",
    },
]


class SignInResult(BaseModel):
    token: str
    user: Dict[str, Any]
    redirect: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def role_redirect_path(role: Optional[str]) -> str:
    return ROLE_LANDING_PAGES.get(role or "user", "/dashboard")


def generate_professional_id(prefix: str) -> str:
    return generate_reference(prefix, random_digits=3)


def resolve_doctor_code(profile: Dict[str, Any]) -> str:
    if profile.get("doctor_id"):
        return profile["doctor_id"]
    code = DOCTOR_EMAIL_CODES.get((profile.get("email") or "").lower())
    if code:
        return code
    logger.warning("No doctor code for %s, defaulting to %s", profile.get("email"), DEFAULT_DOCTOR_CODE)
    return DEFAULT_DOCTOR_CODE


# Sessions

def open_session(db, profile: Dict[str, Any]) -> str:
    sid = new_id()
    expires = now() + timedelta(days=config.JWT_EXPIRE_DAYS)
    db["sessions"].insert_one({"_id": sid, "uid": profile["_id"], "created_at": now(), "expires_at": expires})
    payload = {
        "sub": profile["_id"],
        "sid": sid,
        "email": profile.get("email"),
        "role": profile.get("role", "user"),
        "exp": expires,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)


def authenticate_token(db, token: str) -> Dict[str, Any]:
    """Resolve a bearer token to its profile; the session id is stored under `_session`."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except JWTError:
        raise NotAuthenticated("Invalid token")
    session = db["sessions"].find_one({"_id": payload.get("sid")})
    if not session:
        raise NotAuthenticated("Session expired")
    profile = db["users"].find_one({"_id": payload.get("sub")})
    if not profile:
        raise NotAuthenticated("Invalid token user")
    if profile.get("status") == "inactive":
        raise AccountDisabled()
    profile["_session"] = session["_id"]
    return profile


def logout(db, session_id: str) -> None:
    db["sessions"].delete_one({"_id": session_id})


# Login throttling

def _check_lockout(db, email: str):
    entry = db["login_attempts"].find_one({"_id": email})
    if not entry:
        return
    window_start = now() - timedelta(minutes=config.LOGIN_LOCKOUT_MINUTES)
    if as_utc(entry["first_failed_at"]) < window_start:
        db["login_attempts"].delete_one({"_id": email})
        return
    if entry.get("count", 0) >= config.LOGIN_MAX_ATTEMPTS:
        raise TooManyAttempts()


def _record_failure(db, email: str):
    entry = db["login_attempts"].find_one({"_id": email})
    if entry:
        db["login_attempts"].update_one({"_id": email}, {"$inc": {"count": 1}})
    else:
        db["login_attempts"].insert_one({"_id": email, "count": 1, "first_failed_at": now()})


# Sign in / sign up

def sign_in(db, email: str, password: str) -> SignInResult:
    email = format_email_for_display(email)
    _check_lockout(db, email)

    account = db["accounts"].find_one({"email": email})
    if not account or not verify_password(password, account.get("password_hash", "")):
        _record_failure(db, email)
        logger.info("Failed sign in for %s", email)
        raise InvalidCredentials()
    if account.get("disabled"):
        raise AccountDisabled()
    db["login_attempts"].delete_one({"_id": email})

    profile = db["users"].find_one({"_id": account["_id"]})
    if profile is None:
        logger.info("No profile for %s, creating default", account["_id"])
        create_document("users", {
            "_id": account["_id"],
            "uid": account["_id"],
            "email": email,
            "display_name": account.get("display_name") or email.split("@")[0],
            "role": "user",
            "status": "active",
        }, database=db)
        profile = db["users"].find_one({"_id": account["_id"]})
    if profile.get("status") == "inactive":
        raise AccountDisabled()

    token = open_session(db, profile)
    return SignInResult(token=token, user=serialize_doc(profile), redirect=role_redirect_path(profile.get("role")))


def sign_up(db, email: str, password: str, display_name: str, role: str = "user",
            extra: Optional[Dict[str, Any]] = None) -> SignInResult:
    email = format_email_for_display(email)
    ensure_valid(
        email=validate_email(email),
        password=validate_password(password),
        display_name=validate_name(display_name),
    )
    if db["accounts"].find_one({"email": email}):
        raise EmailAlreadyRegistered()

    account = Account(email=email, password_hash=hash_password(password), display_name=display_name)
    uid = create_document("accounts", account, database=db)

    fields = {k: v for k, v in (extra or {}).items() if k in PROFILE_FIELDS and v is not None}
    fields.update(uid=uid, email=email, display_name=display_name, role=role)
    if role == "doctor":
        fields["doctor_id"] = generate_professional_id("DOC")
    elif role == "merchant":
        fields["merchant_id"] = generate_professional_id("MER")
    profile = UserProfile(**fields).model_dump(exclude_none=True)
    create_document("users", {"_id": uid, **profile}, database=db)
    logger.info("Created %s account %s", role, uid)

    stored = db["users"].find_one({"_id": uid})
    token = open_session(db, stored)
    return SignInResult(token=token, user=serialize_doc(stored), redirect=role_redirect_path(role))


def update_user_profile(db, uid: str, partial: Dict[str, Any]) -> Dict[str, Any]:
    profile = get_or_404(db, "users", uid, "User")
    changes = {k: v for k, v in partial.items() if k in PROFILE_FIELDS}
    if "display_name" in changes:
        ensure_valid(display_name=validate_name(changes["display_name"]))
    if changes.get("phone_number"):
        ensure_valid(phone_number=validate_phone(changes["phone_number"]))
        changes["phone_number"] = format_phone_number(changes["phone_number"])
    return versioned_update(db, "users", uid, profile.get("version"), changes, "User")


# Administration

def list_users(db, search: Optional[str] = None, role: Optional[str] = None) -> List[Dict[str, Any]]:
    users = []
    for doc in db["users"].find({}).sort("created_at", -1):
        name = doc.get("display_name") or f"{doc.get('first_name') or ''} {doc.get('last_name') or ''}".strip()
        doc["display_name"] = name or "Unknown User"
        doc.setdefault("role", "user")
        doc.setdefault("status", "active")
        users.append(doc)
    if role and role != "all":
        users = [u for u in users if u["role"] == role]
    if search:
        term = search.lower()
        users = [u for u in users if term in u["display_name"].lower() or term in (u.get("email") or "").lower()]
    return users


def change_user_role(db, uid: str, new_role: str) -> Dict[str, Any]:
    profile = get_or_404(db, "users", uid, "User")
    changes: Dict[str, Any] = {"role": new_role}
    if new_role == "doctor" and not profile.get("doctor_id"):
        changes["doctor_id"] = generate_professional_id("DOC")
    elif new_role == "merchant" and not profile.get("merchant_id"):
        changes["merchant_id"] = generate_professional_id("MER")
    if new_role != "doctor" and profile.get("doctor_id"):
        changes["doctor_id"] = None
    if new_role != "merchant" and profile.get("merchant_id"):
        changes["merchant_id"] = None
    updated = versioned_update(db, "users", uid, profile.get("version"), changes, "User")
    logger.info("User %s role %s -> %s", uid, profile.get("role"), new_role)
    return updated


def set_user_status(db, uid: str, status: str) -> Dict[str, Any]:
    profile = get_or_404(db, "users", uid, "User")
    updated = versioned_update(db, "users", uid, profile.get("version"), {"status": status}, "User")
    db["accounts"].update_one({"_id": uid}, {"$set": {"disabled": status == "inactive"}})
    if status == "inactive":
        db["sessions"].delete_many({"uid": uid})
    return updated


def create_test_doctors(db) -> List[Dict[str, Any]]:
    created = []
    for doctor in TEST_DOCTORS:
        uid = new_id()
        create_document("users", {
            **doctor,
            "_id": uid,
            "uid": uid,
            "role": "doctor",
            "doctor_id": generate_professional_id("DOC"),
            "status": "active",
        }, database=db)
        created.append(db["users"].find_one({"_id": uid}))
        logger.info("Created test doctor %s", doctor["display_name"])
    return created
