"""
Bookings and doctor appointments

`bookings` is the canonical collection. Older clients also wrote appointments
into `appointments` and used camelCase or nested field names; every read goes
through normalize_booking, which resolves each canonical field from the
ordered aliases in FIELD_ALIASES. migrate_legacy_appointments folds the legacy
collection into the canonical one.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from pymongo.errors import PyMongoError

from database import (
    as_utc,
    create_document,
    generate_reference,
    get_or_404,
    now,
    versioned_update,
)
from errors import Forbidden, NotFound, ValidationFailed
from schemas import Booking, PatientInfo
from transitions import BOOKING_TRANSITIONS, check_transition
from validation import collect_errors, validate_email, validate_name, validate_phone

logger = logging.getLogger(__name__)

BOOKINGS = "bookings"
LEGACY_APPOINTMENTS = "appointments"

# canonical field -> aliases in precedence order (dotted paths reach into nested documents)
FIELD_ALIASES: Dict[str, List[str]] = {
    "invoice_id": ["invoice_id", "invoiceId"],
    "user_id": ["user_id", "userId"],
    "patient_name": ["patient_info.name", "patientInfo.name", "patientInfo.patientName", "patientName"],
    "first_name": ["first_name", "firstName", "patientInfo.firstName"],
    "last_name": ["last_name", "lastName", "patientInfo.lastName"],
    "phone": ["patient_info.phone", "phone", "patientInfo.phone"],
    "email": ["patient_info.email", "email", "patientInfo.email"],
    "service_id": ["service_id", "serviceId"],
    "service_name": ["service_name", "serviceName", "service"],
    "doctor_id": ["doctor_id", "doctorAssigned", "doctorId"],
    "preferred_doctor": ["preferred_doctor", "preferredDoctor", "patientInfo.preferredDoctor"],
    "appointment_date": ["appointment_date", "appointmentDate", "date", "created_at", "createdAt"],
    "appointment_time": ["appointment_time", "appointmentTime", "time"],
    "urgency": ["urgency", "patientInfo.urgency"],
    "symptoms": ["symptoms", "patientInfo.symptoms"],
    "notes": ["notes", "patientInfo.notes"],
    "status": ["status"],
    "payment_status": ["payment_status", "paymentStatus"],
    "total_amount": ["total_amount", "totalAmount"],
    "created_at": ["created_at", "createdAt"],
    "updated_at": ["updated_at", "updatedAt"],
}

DEFAULTS: Dict[str, Any] = {
    "status": "pending",
    "payment_status": "pending",
    "urgency": "normal",
    "total_amount": 0,
    "service_name": "",
    "appointment_time": "",
    "symptoms": "",
    "notes": "",
    "phone": "",
    "email": "",
}

SEARCH_FIELDS = ("patient_name", "service_name", "doctor_id", "preferred_doctor", "phone", "email", "invoice_id")


def _lookup(doc: Dict[str, Any], path: str):
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def coalesce(doc: Dict[str, Any], field: str):
    for alias in FIELD_ALIASES[field]:
        value = _lookup(doc, alias)
        if value not in (None, ""):
            return value
    return DEFAULTS.get(field)


def normalize_booking(doc: Dict[str, Any], source: str = BOOKINGS) -> Dict[str, Any]:
    view = {field: coalesce(doc, field) for field in FIELD_ALIASES}
    if not view["patient_name"]:
        full = f"{view['first_name'] or ''} {view['last_name'] or ''}".strip()
        view["patient_name"] = full or "Unknown Patient"
    view["id"] = doc["_id"]
    view["source"] = source
    view["version"] = doc.get("version")
    return view


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return as_utc(datetime(value.year, value.month, value.day))
    if isinstance(value, str) and value:
        try:
            return as_utc(datetime.fromisoformat(value))
        except ValueError:
            pass
    return as_utc(datetime.min)


# Creation

def create_booking(db, user: Dict[str, Any], patient_info: Dict[str, Any], appointment_date: str,
                   appointment_time: str, service_id: Optional[str] = None, urgency: str = "normal",
                   amount: Optional[float] = None, doctor_id: Optional[str] = None,
                   preferred_doctor: Optional[str] = None, symptoms: Optional[str] = None,
                   notes: Optional[str] = None) -> Dict[str, Any]:
    errors = collect_errors(
        name=validate_name(patient_info.get("name")),
        email=validate_email(patient_info.get("email")),
        phone=validate_phone(patient_info.get("phone")),
    )
    if not symptoms:
        errors["symptoms"] = "Please describe your symptoms or reason for visit"
    try:
        day = datetime.strptime(appointment_date, "%Y-%m-%d").date()
        if day < now().date():
            errors["appointment_date"] = "Appointment date cannot be in the past"
    except ValueError:
        errors["appointment_date"] = "Date must be YYYY-MM-DD"
    try:
        datetime.strptime(appointment_time, "%H:%M")
    except ValueError:
        errors["appointment_time"] = "Time must be HH:MM"
    if errors:
        raise ValidationFailed(errors)

    service_name = None
    if service_id:
        service = db["services"].find_one({"_id": service_id})
        if not service:
            raise NotFound("Service")
        service_name = service.get("name")
        amount = service.get("price", 0)

    booking = Booking(
        invoice_id=generate_reference("INV", 4),
        user_id=user["_id"],
        patient_info=PatientInfo(**patient_info),
        service_id=service_id,
        service_name=service_name,
        doctor_id=doctor_id,
        preferred_doctor=preferred_doctor,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        urgency=urgency,
        symptoms=symptoms,
        notes=notes,
        total_amount=amount or 0,
    )
    booking_id = create_document(BOOKINGS, booking, database=db)
    logger.info("Booking %s created (%s) for %s", booking_id, booking.invoice_id, user["_id"])
    return normalize_booking(db[BOOKINGS].find_one({"_id": booking_id}))


# Queries

def get_booking(db, booking_id: str) -> Dict[str, Any]:
    doc = db[BOOKINGS].find_one({"_id": booking_id})
    if doc:
        return normalize_booking(doc)
    doc = db[LEGACY_APPOINTMENTS].find_one({"_id": booking_id})
    if doc:
        return normalize_booking(doc, LEGACY_APPOINTMENTS)
    raise NotFound("Booking")


def list_for_patient(db, user_id: str, email: Optional[str] = None) -> List[Dict[str, Any]]:
    owner_keys = FIELD_ALIASES["user_id"]
    docs = list(db[BOOKINGS].find({"$or": [{k: user_id} for k in owner_keys]}))
    if not docs and email:
        logger.info("No bookings linked to %s, falling back to email", user_id)
        docs = list(db[BOOKINGS].find({"$or": [{k: email} for k in FIELD_ALIASES["email"]]}))
    bookings = [normalize_booking(d) for d in docs]
    bookings.sort(key=lambda b: _as_datetime(b["created_at"]), reverse=True)
    return bookings


def _merge(db, query: dict, collections: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    merged: Dict[str, Dict[str, Any]] = {}
    for collection in collections:
        try:
            docs = list(db[collection].find(query))
        except PyMongoError:
            logger.exception("Query on %s failed", collection)
            continue
        for doc in docs:
            if doc["_id"] not in merged:
                merged[doc["_id"]] = normalize_booking(doc, collection)
    return merged


def list_for_doctor(db, doctor_code: str) -> List[Dict[str, Any]]:
    query = {"$or": [{key: doctor_code} for key in FIELD_ALIASES["doctor_id"]]}
    appointments = list(_merge(db, query, (BOOKINGS, LEGACY_APPOINTMENTS)).values())
    appointments.sort(key=lambda a: _as_datetime(a["appointment_date"] or a["created_at"]), reverse=True)
    logger.info("Found %d appointments for doctor %s", len(appointments), doctor_code)
    return appointments


def list_all(db) -> List[Dict[str, Any]]:
    bookings = list(_merge(db, {}, (BOOKINGS, LEGACY_APPOINTMENTS)).values())
    bookings.sort(key=lambda b: _as_datetime(b["created_at"]), reverse=True)
    return bookings


def filter_bookings(bookings: List[Dict[str, Any]], search: Optional[str] = None,
                    status: Optional[str] = None) -> List[Dict[str, Any]]:
    result = bookings
    if status and status != "all":
        result = [b for b in result if b.get("status") == status]
    if search:
        term = search.lower()
        result = [
            b for b in result
            if any(term in str(b.get(field) or "").lower() for field in SEARCH_FIELDS)
        ]
    return result


def patients_for_doctor(appointments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Collapse a doctor's appointments into one row per patient."""
    patients: Dict[str, Dict[str, Any]] = {}
    for apt in appointments:
        key = (apt.get("email") or apt.get("phone") or apt["patient_name"]).lower()
        row = patients.get(key)
        when = _as_datetime(apt["appointment_date"] or apt["created_at"])
        if row is None:
            patients[key] = {
                "name": apt["patient_name"],
                "email": apt.get("email"),
                "phone": apt.get("phone"),
                "visits": 1,
                "last_visit": apt["appointment_date"],
                "last_status": apt["status"],
                "_last": when,
            }
            continue
        row["visits"] += 1
        if when > row["_last"]:
            row.update(last_visit=apt["appointment_date"], last_status=apt["status"], _last=when)
    rows = sorted(patients.values(), key=lambda r: r["_last"], reverse=True)
    for row in rows:
        del row["_last"]
    return rows


# Mutations

def _mirror_legacy(db, booking_id: str, changes: Dict[str, Any]):
    try:
        db[LEGACY_APPOINTMENTS].update_one({"_id": booking_id}, {"$set": {**changes, "updated_at": now()}})
    except PyMongoError:
        logger.warning("Could not mirror %s to %s for %s", changes, LEGACY_APPOINTMENTS, booking_id, exc_info=True)


def _write(db, booking: Dict[str, Any], changes: Dict[str, Any], expected_version: Optional[int]) -> Dict[str, Any]:
    version = booking["version"] if expected_version is None else expected_version
    collection = booking["source"]
    doc = versioned_update(db, collection, booking["id"], version, changes, "Booking")
    if collection == BOOKINGS:
        _mirror_legacy(db, booking["id"], changes)
    return normalize_booking(doc, collection)


def update_status(db, booking_id: str, new_status: str, expected_version: Optional[int] = None) -> Dict[str, Any]:
    booking = get_booking(db, booking_id)
    if not check_transition(BOOKING_TRANSITIONS, "booking", booking["status"], new_status):
        return booking
    updated = _write(db, booking, {"status": new_status}, expected_version)
    logger.info("Booking %s %s -> %s", booking_id, booking["status"], new_status)
    return updated


def update_status_as_doctor(db, booking_id: str, doctor_code: str, new_status: str,
                            expected_version: Optional[int] = None) -> Dict[str, Any]:
    booking = get_booking(db, booking_id)
    if booking["doctor_id"] != doctor_code:
        raise Forbidden("Appointment is not assigned to you")
    return update_status(db, booking_id, new_status, expected_version)


def cancel_booking(db, booking_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    booking = get_booking(db, booking_id)
    if booking["user_id"] != user["_id"] and booking["email"] != user.get("email"):
        raise Forbidden("You can only cancel your own bookings")
    return update_status(db, booking_id, "cancelled")


def assign_doctor(db, booking_id: str, doctor_code: str) -> Dict[str, Any]:
    booking = get_booking(db, booking_id)
    return _write(db, booking, {"doctor_id": doctor_code}, None)


def mark_payment(db, booking_id: str, payment_status: str) -> Dict[str, Any]:
    booking = get_booking(db, booking_id)
    return _write(db, booking, {"payment_status": payment_status}, None)


def delete_booking(db, booking_id: str) -> None:
    deleted = db[BOOKINGS].delete_one({"_id": booking_id}).deleted_count
    deleted += db[LEGACY_APPOINTMENTS].delete_one({"_id": booking_id}).deleted_count
    if not deleted:
        raise NotFound("Booking")
    logger.info("Booking %s deleted", booking_id)


# Migration

def canonical_document(view: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "invoice_id": view["invoice_id"] or generate_reference("INV", 4),
        "user_id": view["user_id"],
        "patient_info": {"name": view["patient_name"], "email": view["email"], "phone": view["phone"]},
        "service_id": view["service_id"],
        "service_name": view["service_name"],
        "doctor_id": view["doctor_id"],
        "preferred_doctor": view["preferred_doctor"],
        "appointment_date": view["appointment_date"],
        "appointment_time": view["appointment_time"],
        "urgency": view["urgency"],
        "symptoms": view["symptoms"],
        "notes": view["notes"],
        "status": view["status"],
        "payment_status": view["payment_status"],
        "total_amount": view["total_amount"],
        "created_at": view["created_at"] or now(),
        "updated_at": now(),
    }


def migrate_legacy_appointments(db) -> Dict[str, int]:
    """
    Copy legacy appointments into bookings (same id) and rewrite bookings that
    still use old field names. Safe to run repeatedly.
    """
    copied = rewritten = 0
    for doc in db[LEGACY_APPOINTMENTS].find({}):
        if db[BOOKINGS].find_one({"_id": doc["_id"]}):
            continue
        canonical = canonical_document(normalize_booking(doc, LEGACY_APPOINTMENTS))
        db[BOOKINGS].insert_one({"_id": doc["_id"], **canonical, "version": 1})
        copied += 1
    for doc in db[BOOKINGS].find({"patient_info": {"$exists": False}}):
        canonical = canonical_document(normalize_booking(doc))
        db[BOOKINGS].replace_one(
            {"_id": doc["_id"]},
            {**canonical, "version": (doc.get("version") or 0) + 1},
        )
        rewritten += 1
    logger.info("Migration copied %d legacy appointments, rewrote %d bookings", copied, rewritten)
    return {"copied": copied, "rewritten": rewritten}
