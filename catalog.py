"""
Catalog: products, services, promos and contact messages.

Product and service listings fall back to the built-in demo catalog when the
database query fails, so storefront pages stay populated.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from database import as_utc, create_document, get_documents, get_or_404, now, versioned_update
from errors import Forbidden, NotFound, ValidationFailed
from schemas import Contact, Product, Promo, Service

logger = logging.getLogger(__name__)

DEMO_SERVICES: List[dict] = [
    {"name": "General Consultation", "description": "Complete health checkup and medical consultation",
     "price": 500, "duration": "30 minutes", "category": "General Medicine"},
    {"name": "Cardiology Consultation", "description": "Heart health checkup and cardiovascular assessment",
     "price": 1200, "duration": "45 minutes", "category": "Cardiology"},
    {"name": "Dermatology Consultation", "description": "Skin and hair related consultation and treatment",
     "price": 800, "duration": "30 minutes", "category": "Dermatology"},
    {"name": "Pediatric Consultation", "description": "Child health consultation and immunization",
     "price": 600, "duration": "30 minutes", "category": "Pediatrics"},
    {"name": "Orthopedic Consultation", "description": "Bone and joint health consultation",
     "price": 1000, "duration": "40 minutes", "category": "Orthopedics"},
    {"name": "Eye Examination", "description": "Complete eye checkup and vision testing",
     "price": 700, "duration": "25 minutes", "category": "Ophthalmology"},
    {"name": "Dental Checkup", "description": "Oral health examination and cleaning",
     "price": 400, "duration": "30 minutes", "category": "Dentistry"},
    {"name": "Blood Test Package", "description": "Comprehensive blood work and analysis",
     "price": 1500, "duration": "15 minutes", "category": "Laboratory"},
]

DEMO_PRODUCTS: List[dict] = [
    {"name": "Digital Blood Pressure Monitor", "description": "Automatic upper arm BP monitor",
     "price": 2500, "category": "Medical Equipment", "stock": 25, "rating": 4.5},
    {"name": "Digital Thermometer", "description": "Fast reading digital thermometer",
     "price": 349, "category": "Medical Equipment", "stock": 100, "rating": 4.3},
    {"name": "Paracetamol 500mg", "description": "Strip of 10 tablets",
     "price": 45, "category": "Medicines", "stock": 500, "rating": 4.6},
    {"name": "Vitamin D3 Tablets", "description": "60 tablets, 1000 IU",
     "price": 299, "category": "Vitamins & Supplements", "stock": 150, "rating": 4.4},
    {"name": "Hand Sanitizer 500ml", "description": "70% alcohol based sanitizer",
     "price": 199, "category": "Personal Care", "stock": 200, "rating": 4.2},
    {"name": "First Aid Kit", "description": "Home and travel first aid kit",
     "price": 899, "category": "First Aid", "stock": 60, "rating": 4.7},
    {"name": "Hospital Bed (Semi-Fowler)", "description": "Manual two-function hospital bed",
     "price": 35000, "category": "Medical Equipment", "stock": 5, "rating": 4.5,
     "available_for_rent": True, "rent_price": 150, "rent_period": "daily",
     "min_rent_duration": 7, "max_rent_duration": 180, "security_deposit": 5000},
    {"name": "Oxygen Concentrator 5L", "description": "Continuous flow oxygen concentrator",
     "price": 45000, "category": "Respiratory Care", "stock": 4, "rating": 4.6,
     "available_for_rent": True, "rent_price": 2500, "rent_period": "weekly",
     "min_rent_duration": 1, "max_rent_duration": 26, "security_deposit": 10000},
    {"name": "Wheelchair (Foldable)", "description": "Lightweight foldable wheelchair",
     "price": 6500, "category": "Mobility Aids", "stock": 12, "rating": 4.4,
     "available_for_rent": True, "rent_price": 1500, "rent_period": "monthly",
     "min_rent_duration": 1, "max_rent_duration": 12, "security_deposit": 2000},
]


def _search(docs: List[dict], search: Optional[str], category: Optional[str]) -> List[dict]:
    if category and category.lower() != "all":
        docs = [d for d in docs if (d.get("category") or "").lower() == category.lower()]
    if search:
        term = search.lower()
        docs = [d for d in docs if term in (d.get("name") or "").lower()
                or term in (d.get("description") or "").lower()]
    return docs


def _sample(items: List[dict], prefix: str) -> List[dict]:
    return [{"_id": f"{prefix}-{i + 1}", **item} for i, item in enumerate(items)]


# Products

def list_products(db, search: Optional[str] = None, category: Optional[str] = None,
                  rentable: Optional[bool] = None) -> List[dict]:
    query: Dict[str, Any] = {"status": {"$ne": "inactive"}}
    if rentable is not None:
        query["available_for_rent"] = rentable
    try:
        docs = get_documents("products", query, limit=200, database=db)
    except PyMongoError:
        logger.exception("Loading products failed, serving demo catalog")
        docs = [p for p in _sample(DEMO_PRODUCTS, "sample-product")
                if rentable is None or bool(p.get("available_for_rent")) == rentable]
    return _search(docs, search, category)


def get_product(db, product_id: str) -> dict:
    return get_or_404(db, "products", product_id, "Product")


def list_merchant_products(db, merchant_id: str) -> List[dict]:
    return list(db["products"].find({"merchant_id": merchant_id}).sort("created_at", -1))


def create_product(db, product: Product, merchant_id: Optional[str]) -> dict:
    data = product.model_dump()
    data["merchant_id"] = merchant_id
    if data["stock"] == 0:
        data["status"] = "out-of-stock"
    product_id = create_document("products", data, database=db)
    return db["products"].find_one({"_id": product_id})


def update_product(db, product_id: str, changes: Dict[str, Any], merchant_id: Optional[str]) -> dict:
    product = get_product(db, product_id)
    if merchant_id is not None and product.get("merchant_id") != merchant_id:
        raise Forbidden("Product belongs to another merchant")
    if not changes:
        raise ValidationFailed({"body": "No updates provided"})
    if changes.get("stock") == 0:
        changes["status"] = "out-of-stock"
    return versioned_update(db, "products", product_id, product.get("version"), changes, "Product")


def delete_product(db, product_id: str, merchant_id: Optional[str]) -> None:
    product = get_product(db, product_id)
    if merchant_id is not None and product.get("merchant_id") != merchant_id:
        raise Forbidden("Product belongs to another merchant")
    db["products"].delete_one({"_id": product_id})


# Services

def list_services(db, search: Optional[str] = None, category: Optional[str] = None) -> List[dict]:
    try:
        docs = get_documents("services", database=db)
    except PyMongoError:
        logger.exception("Loading services failed, serving demo services")
        docs = _sample(DEMO_SERVICES, "sample-service")
    return _search(docs, search, category)


def create_service(db, service: Service) -> dict:
    service_id = create_document("services", service, database=db)
    return db["services"].find_one({"_id": service_id})


def seed_catalog(db) -> Dict[str, int]:
    inserted = {"products": 0, "services": 0}
    if db["products"].count_documents({}) == 0:
        for item in DEMO_PRODUCTS:
            create_document("products", Product(**item), database=db)
            inserted["products"] += 1
    if db["services"].count_documents({}) == 0:
        for item in DEMO_SERVICES:
            create_document("services", Service(**item), database=db)
            inserted["services"] += 1
    return inserted


# Promos

def effective_status(promo: dict) -> str:
    end = promo.get("end_date")
    if isinstance(end, datetime) and as_utc(end) < now():
        return "expired"
    return promo.get("status", "active")


def list_promos(db, status: Optional[str] = None, search: Optional[str] = None) -> List[dict]:
    promos = []
    for promo in db["promos"].find({}).sort("created_at", -1):
        promo["status"] = effective_status(promo)
        promos.append(promo)
    if status and status != "all":
        promos = [p for p in promos if p["status"] == status]
    if search:
        term = search.lower()
        promos = [p for p in promos if term in p["code"].lower() or term in (p.get("description") or "").lower()]
    return promos


def create_promo(db, promo: Promo) -> dict:
    data = promo.model_dump()
    data["code"] = data["code"].strip().upper()
    if db["promos"].find_one({"code": data["code"]}):
        raise ValidationFailed({"code": "Promo code already exists"})
    if data["discount_type"] == "percentage" and data["discount_value"] > 100:
        raise ValidationFailed({"discount_value": "Percentage discount cannot exceed 100"})
    promo_id = create_document("promos", data, database=db)
    return db["promos"].find_one({"_id": promo_id})


def update_promo(db, promo_id: str, changes: Dict[str, Any]) -> dict:
    promo = get_or_404(db, "promos", promo_id, "Promo")
    return versioned_update(db, "promos", promo_id, promo.get("version"), changes, "Promo")


def delete_promo(db, promo_id: str) -> None:
    if not db["promos"].delete_one({"_id": promo_id}).deleted_count:
        raise NotFound("Promo")


# Contacts

def submit_contact(db, contact: Contact) -> str:
    contact_id = create_document("contacts", contact, database=db)
    logger.info("Contact message %s from %s", contact_id, contact.email)
    return contact_id


def list_contacts(db, status: Optional[str] = None) -> List[dict]:
    query = {"status": status} if status and status != "all" else {}
    return list(db["contacts"].find(query).sort("created_at", -1))
