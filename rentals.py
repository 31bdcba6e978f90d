"""
Equipment rental requests

Costs are derived from the product's rent price and deposit:

    rent_amount     = rent_price * duration
    advance_payment = max(rent_amount * 0.30, 1000)
    total_amount    = rent_amount + security_deposit

A request needs a submitted bank cheque before it can be approved.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from database import create_document, get_or_404, versioned_update
from errors import InvalidTransition, NotFound, ValidationFailed
from schemas import CustomerDetails, RentalDetails, RentalDocuments, RentalRequest
from transitions import RENTAL_TRANSITIONS, check_transition
from verification import VerificationResult

logger = logging.getLogger(__name__)

COLLECTION = "rentalRequests"
ADVANCE_RATE = 0.30
MIN_ADVANCE = 1000

SUBMITTED_DOCUMENT_FIELDS = ("aadhar_number", "pan_number", "aadhar_image", "pan_image", "bank_cheque_image")


def compute_rental_costs(product: Dict[str, Any], duration: int) -> Dict[str, float]:
    rent_amount = float(product.get("rent_price") or 0) * duration
    security_deposit = float(product.get("security_deposit") or 0)
    return {
        "rent_amount": rent_amount,
        "security_deposit": security_deposit,
        "advance_payment": max(rent_amount * ADVANCE_RATE, MIN_ADVANCE),
        "total_amount": rent_amount + security_deposit,
    }


def _required_errors(customer: Dict[str, Any], documents: Dict[str, Any]) -> Dict[str, str]:
    required = {
        "full_name": customer.get("full_name"),
        "phone": customer.get("phone"),
        "address": customer.get("address"),
        "aadhar_number": documents.get("aadhar_number"),
        "pan_number": documents.get("pan_number"),
        "bank_cheque_image": documents.get("bank_cheque_image"),
    }
    return {field: "This field is required" for field, value in required.items() if not (value or "").strip()}


def create_rental_request(db, user: Dict[str, Any], product_id: str, customer: Dict[str, Any],
                          documents: Dict[str, Any], start_date: datetime, duration: int,
                          notes: Optional[str] = None) -> Dict[str, Any]:
    product = db["products"].find_one({"_id": product_id})
    if not product:
        raise NotFound("Product")
    if not product.get("available_for_rent"):
        raise ValidationFailed({"product_id": "Product is not available for rent"})

    errors = _required_errors(customer, documents)
    min_duration = product.get("min_rent_duration")
    max_duration = product.get("max_rent_duration")
    if min_duration and duration < min_duration:
        errors["duration"] = f"Minimum rental duration is {min_duration}"
    elif max_duration and duration > max_duration:
        errors["duration"] = f"Maximum rental duration is {max_duration}"
    if errors:
        raise ValidationFailed(errors)

    costs = compute_rental_costs(product, duration)
    details = CustomerDetails(**customer)
    request = RentalRequest(
        user_id=user["_id"],
        product_id=product_id,
        product_name=product.get("name", ""),
        customer_details=details,
        documents=RentalDocuments(
            **{k: documents.get(k) for k in SUBMITTED_DOCUMENT_FIELDS},
            cheque_submitted=bool(documents.get("bank_cheque_image")),
        ),
        rental_details=RentalDetails(
            start_date=start_date,
            end_date=start_date + timedelta(days=duration),
            duration=duration,
            **costs,
        ),
        delivery_address=f"{details.address}, {details.city}, {details.state} - {details.pincode}",
        notes=notes,
    )
    request_id = create_document(COLLECTION, request, database=db)
    logger.info("Rental request %s for product %s by %s", request_id, product_id, user["_id"])
    return db[COLLECTION].find_one({"_id": request_id})


def get_request(db, request_id: str) -> Dict[str, Any]:
    return get_or_404(db, COLLECTION, request_id, "Rental request")


def list_for_user(db, user_id: str) -> List[Dict[str, Any]]:
    return list(db[COLLECTION].find({"user_id": user_id}).sort("created_at", -1))


def list_all(db, status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = {"status": status} if status and status != "all" else {}
    return list(db[COLLECTION].find(query).sort("created_at", -1))


def status_counts(requests: List[Dict[str, Any]]) -> Dict[str, int]:
    counts = {status: 0 for status in RENTAL_TRANSITIONS}
    for r in requests:
        counts[r.get("status", "pending")] = counts.get(r.get("status", "pending"), 0) + 1
    return counts


def update_status(db, request_id: str, new_status: str, admin_notes: Optional[str] = None,
                  expected_version: Optional[int] = None) -> Dict[str, Any]:
    request = get_request(db, request_id)
    current = request.get("status", "pending")
    changed = check_transition(RENTAL_TRANSITIONS, "rental request", current, new_status)
    if new_status == "approved" and changed and not request.get("documents", {}).get("cheque_submitted"):
        raise InvalidTransition("rental request", current, new_status)
    changes: Dict[str, Any] = {}
    if changed:
        changes["status"] = new_status
    if admin_notes is not None:
        changes["admin_notes"] = admin_notes
    if not changes:
        return request
    version = request.get("version") if expected_version is None else expected_version
    updated = versioned_update(db, COLLECTION, request_id, version, changes, "Rental request")
    logger.info("Rental request %s %s -> %s", request_id, current, updated.get("status"))
    return updated


def cancel_request(db, request_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    request = get_request(db, request_id)
    if request["user_id"] != user["_id"]:
        raise NotFound("Rental request")
    return update_status(db, request_id, "cancelled")


def verify_document(db, request_id: str, kind: str, verified: bool) -> Dict[str, Any]:
    if kind not in ("aadhar", "pan"):
        raise ValidationFailed({"kind": "Document kind must be aadhar or pan"})
    request = get_request(db, request_id)
    field = "documents.aadhar_verified" if kind == "aadhar" else "documents.pan_verified"
    updated = versioned_update(db, COLLECTION, request_id, request.get("version"), {field: verified}, "Rental request")
    logger.info("Rental request %s %s %s", request_id, kind, "verified" if verified else "rejected")
    return updated


async def run_government_verification(verifier, kind: str, number: str) -> VerificationResult:
    if kind == "aadhar":
        return await verifier.verify_aadhar(number)
    if kind == "pan":
        return await verifier.verify_pan(number)
    raise ValidationFailed({"kind": "Document kind must be aadhar or pan"})


def mark_payment(db, request_id: str, payment_status: str) -> Dict[str, Any]:
    request = get_request(db, request_id)
    return versioned_update(db, COLLECTION, request_id, request.get("version"),
                            {"payment_status": payment_status}, "Rental request")
