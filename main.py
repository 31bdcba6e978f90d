import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import PyMongoError

import auth
import bookings
import cart
import catalog
import config
import database
import orders
import payments
import rentals
from database import serialize_doc
from errors import Forbidden, NotAuthenticated
from schemas import Contact, PaymentStatus, Product, Promo, Role, Service, ShippingAddress
from verification import MockGovernmentVerifier, verification_message, verifier

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# App init
app = FastAPI(title="Healthcare Platform API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies
def get_db():
    if database.db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return database.db


def get_bridge() -> payments.PaymentBridge:
    return payments.default_bridge()


def get_verifier() -> MockGovernmentVerifier:
    return verifier


def get_current_user(authorization: Optional[str] = Header(None), db=Depends(get_db)):
    if not authorization:
        raise NotAuthenticated("Missing Authorization header")
    token = authorization.replace("Bearer ", "").strip()
    return auth.authenticate_token(db, token)


def require_role(*roles: str):
    def checker(user=Depends(get_current_user)):
        if user.get("role", "user") not in roles:
            raise Forbidden(f"{' or '.join(r.capitalize() for r in roles)} only")
        return user
    return checker


require_admin = require_role("admin")
require_doctor = require_role("doctor")
require_merchant = require_role("merchant")


def merchant_id_of(user: Dict[str, Any]) -> str:
    if not user.get("merchant_id"):
        raise Forbidden("Merchant profile has no merchant id")
    return user["merchant_id"]


def _public_user(profile: Dict[str, Any]) -> Dict[str, Any]:
    return serialize_doc({k: v for k, v in profile.items() if k != "_session"})


# Request models
class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    display_name: str
    role: Literal["user", "doctor", "merchant"] = "user"
    phone_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    specialization: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    specialization: Optional[str] = None


class RoleChangeRequest(BaseModel):
    role: Role


class UserStatusRequest(BaseModel):
    status: Literal["active", "inactive"]


class CartAddRequest(BaseModel):
    item_id: str
    quantity: int = Field(1, ge=1)
    type: Literal["product", "service"] = "product"
    expected_version: Optional[int] = None


class CartQuantityRequest(BaseModel):
    quantity: int
    expected_version: Optional[int] = None


class PatientInfoRequest(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: Optional[str] = None
    emergency_contact: Optional[str] = None


class BookingCreateRequest(BaseModel):
    patient_info: PatientInfoRequest
    appointment_date: str
    appointment_time: str
    service_id: Optional[str] = None
    urgency: Literal["normal", "priority", "urgent"] = "normal"
    amount: Optional[float] = Field(None, ge=0)
    doctor_id: Optional[str] = None
    preferred_doctor: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str
    expected_version: Optional[int] = None


class AssignDoctorRequest(BaseModel):
    doctor_id: str


class PaymentStatusRequest(BaseModel):
    payment_status: PaymentStatus


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddress
    payment_method: Literal["razorpay", "cod"] = "razorpay"


class RentalCustomerRequest(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


class RentalDocumentsRequest(BaseModel):
    aadhar_number: str = ""
    pan_number: str = ""
    aadhar_image: Optional[str] = None
    pan_image: Optional[str] = None
    bank_cheque_image: Optional[str] = None


class RentalCreateRequest(BaseModel):
    product_id: str
    customer_details: RentalCustomerRequest
    documents: RentalDocumentsRequest
    start_date: datetime
    duration: int = Field(..., ge=1)
    notes: Optional[str] = None


class RentalStatusRequest(BaseModel):
    status: str
    admin_notes: Optional[str] = None
    expected_version: Optional[int] = None


class DocumentVerifyRequest(BaseModel):
    kind: Literal["aadhar", "pan"]
    verified: bool


class GovernmentVerifyRequest(BaseModel):
    kind: Literal["aadhar", "pan"]
    number: str


class CreateOrderRequest(BaseModel):
    amount: Optional[float] = None
    target_kind: Optional[Literal["booking", "order", "rental"]] = None
    target_id: Optional[str] = None
    currency: str = config.PAYMENT_CURRENCY
    receipt: Optional[str] = None
    notes: Dict[str, Any] = {}


class CheckoutOptionsRequest(CreateOrderRequest):
    description: Optional[str] = None
    prefill: Dict[str, str] = {}


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    target_kind: Optional[Literal["booking", "order", "rental"]] = None
    target_id: Optional[str] = None
    notes: Dict[str, Any] = {}


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    image: Optional[str] = None
    prescription: Optional[bool] = None
    status: Optional[Literal["active", "inactive", "out-of-stock"]] = None
    available_for_rent: Optional[bool] = None
    rent_price: Optional[float] = Field(None, ge=0)
    rent_period: Optional[Literal["daily", "weekly", "monthly"]] = None
    min_rent_duration: Optional[int] = Field(None, ge=1)
    max_rent_duration: Optional[int] = Field(None, ge=1)
    security_deposit: Optional[float] = Field(None, ge=0)


class PromoUpdateRequest(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[Literal["percentage", "fixed"]] = None
    discount_value: Optional[float] = Field(None, ge=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[Literal["active", "inactive"]] = None


class ContactRequest(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str


def _changes(req: BaseModel) -> Dict[str, Any]:
    return {k: v for k, v in req.model_dump().items() if v is not None}


# Routes
@app.get("/")
def root():
    return {"message": "Healthcare Platform API running"}


@app.get("/test")
def test_database():
    db = database.db
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
        "payment_gateway": "✅ Configured" if config.gateway_configured() else "⚠️  Mock orders",
    }
    if db is None:
        response["database"] = "⚠️  Available but not initialized"
        return response
    response["database"] = "✅ Available"
    response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
    response["database_name"] = db.name
    response["connection_status"] = "Connected"
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# Auth
@app.post("/api/auth/signup")
def signup(req: SignupRequest, db=Depends(get_db)):
    extra = req.model_dump(include={"phone_number", "first_name", "last_name", "specialization"})
    result = auth.sign_up(db, req.email, req.password, req.display_name, role=req.role, extra=extra)
    return result.model_dump()


@app.post("/api/auth/login")
def login(req: LoginRequest, db=Depends(get_db)):
    return auth.sign_in(db, req.email, req.password).model_dump()


@app.post("/api/auth/logout")
def logout(user=Depends(get_current_user), db=Depends(get_db)):
    auth.logout(db, user["_session"])
    return {"logged_out": True}


@app.get("/api/auth/me")
def me(user=Depends(get_current_user)):
    return {"user": _public_user(user), "redirect": auth.role_redirect_path(user.get("role"))}


@app.patch("/api/auth/me")
def update_me(req: ProfileUpdateRequest, user=Depends(get_current_user), db=Depends(get_db)):
    return _public_user(auth.update_user_profile(db, user["_id"], _changes(req)))


# Admin: users
@app.get("/api/admin/users")
def admin_list_users(search: Optional[str] = None, role: Optional[str] = None,
                     admin=Depends(require_admin), db=Depends(get_db)):
    return [_public_user(u) for u in auth.list_users(db, search, role)]


@app.put("/api/admin/users/{uid}/role")
def admin_change_role(uid: str, req: RoleChangeRequest, admin=Depends(require_admin), db=Depends(get_db)):
    return _public_user(auth.change_user_role(db, uid, req.role))


@app.put("/api/admin/users/{uid}/status")
def admin_set_status(uid: str, req: UserStatusRequest, admin=Depends(require_admin), db=Depends(get_db)):
    if uid == admin["_id"] and req.status == "inactive":
        raise Forbidden("You cannot disable your own account")
    return _public_user(auth.set_user_status(db, uid, req.status))


@app.post("/api/admin/test-doctors")
def admin_create_test_doctors(admin=Depends(require_admin), db=Depends(get_db)):
    return [_public_user(d) for d in auth.create_test_doctors(db)]


# Cart
def _cart_response(doc: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize_doc(doc)
    data["item_count"] = cart.cart_item_count(doc)
    return data


@app.get("/api/cart")
def get_cart(user=Depends(get_current_user), db=Depends(get_db)):
    return _cart_response(cart.load_cart(db, user["_id"]))


@app.post("/api/cart/items")
def add_cart_item(req: CartAddRequest, user=Depends(get_current_user), db=Depends(get_db)):
    updated = cart.add_catalog_item(db, user["_id"], req.item_id, req.type, req.quantity, req.expected_version)
    return _cart_response(updated)


@app.put("/api/cart/items/{item_id}")
def update_cart_item(item_id: str, req: CartQuantityRequest, user=Depends(get_current_user), db=Depends(get_db)):
    return _cart_response(cart.update_quantity(db, user["_id"], item_id, req.quantity, req.expected_version))


@app.delete("/api/cart/items/{item_id}")
def remove_cart_item(item_id: str, expected_version: Optional[int] = None,
                     user=Depends(get_current_user), db=Depends(get_db)):
    return _cart_response(cart.remove_from_cart(db, user["_id"], item_id, expected_version))


@app.delete("/api/cart")
def clear_cart(expected_version: Optional[int] = None, user=Depends(get_current_user), db=Depends(get_db)):
    return _cart_response(cart.clear_cart(db, user["_id"], expected_version))


# Bookings
@app.post("/api/bookings")
def create_booking(req: BookingCreateRequest, user=Depends(get_current_user), db=Depends(get_db)):
    booking = bookings.create_booking(
        db, user, req.patient_info.model_dump(), req.appointment_date, req.appointment_time,
        service_id=req.service_id, urgency=req.urgency, amount=req.amount, doctor_id=req.doctor_id,
        preferred_doctor=req.preferred_doctor, symptoms=req.symptoms, notes=req.notes,
    )
    return serialize_doc(booking)


@app.get("/api/bookings/mine")
def my_bookings(user=Depends(get_current_user), db=Depends(get_db)):
    return [serialize_doc(b) for b in bookings.list_for_patient(db, user["_id"], user.get("email"))]


@app.post("/api/bookings/{booking_id}/cancel")
def cancel_booking(booking_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    return serialize_doc(bookings.cancel_booking(db, booking_id, user))


# Doctor
@app.get("/api/doctor/appointments")
def doctor_appointments(search: Optional[str] = None, status: Optional[str] = None,
                        doctor=Depends(require_doctor), db=Depends(get_db)):
    appointments = bookings.list_for_doctor(db, auth.resolve_doctor_code(doctor))
    return [serialize_doc(a) for a in bookings.filter_bookings(appointments, search, status)]


@app.get("/api/doctor/patients")
def doctor_patients(doctor=Depends(require_doctor), db=Depends(get_db)):
    return bookings.patients_for_doctor(bookings.list_for_doctor(db, auth.resolve_doctor_code(doctor)))


@app.put("/api/doctor/appointments/{booking_id}/status")
def doctor_update_status(booking_id: str, req: StatusUpdateRequest, doctor=Depends(require_doctor),
                         db=Depends(get_db)):
    updated = bookings.update_status_as_doctor(
        db, booking_id, auth.resolve_doctor_code(doctor), req.status, req.expected_version)
    return serialize_doc(updated)


# Admin: bookings
@app.get("/api/admin/bookings")
def admin_bookings(search: Optional[str] = None, status: Optional[str] = None,
                   admin=Depends(require_admin), db=Depends(get_db)):
    return [serialize_doc(b) for b in bookings.filter_bookings(bookings.list_all(db), search, status)]


@app.put("/api/admin/bookings/{booking_id}/status")
def admin_booking_status(booking_id: str, req: StatusUpdateRequest, admin=Depends(require_admin),
                         db=Depends(get_db)):
    return serialize_doc(bookings.update_status(db, booking_id, req.status, req.expected_version))


@app.put("/api/admin/bookings/{booking_id}/doctor")
def admin_assign_doctor(booking_id: str, req: AssignDoctorRequest, admin=Depends(require_admin),
                        db=Depends(get_db)):
    return serialize_doc(bookings.assign_doctor(db, booking_id, req.doctor_id))


@app.delete("/api/admin/bookings/{booking_id}")
def admin_delete_booking(booking_id: str, admin=Depends(require_admin), db=Depends(get_db)):
    bookings.delete_booking(db, booking_id)
    return {"deleted": True}


# Orders
@app.post("/api/orders/checkout")
def checkout(req: CheckoutRequest, user=Depends(get_current_user), db=Depends(get_db),
             bridge: payments.PaymentBridge = Depends(get_bridge)):
    current = cart.load_cart(db, user["_id"])
    order = orders.place_order(db, user, current, req.shipping_address, payment_method=req.payment_method)
    cart.clear_cart(db, user["_id"])
    response: Dict[str, Any] = {"order": serialize_doc(order), "payment": None}
    if req.payment_method == "razorpay":
        gateway_order = payments.create_target_order(db, bridge, "order", order["_id"], user,
                                                     config.PAYMENT_CURRENCY, receipt=order["order_number"])
        response["payment"] = bridge.checkout_options(
            gateway_order, user, description=f"Order {order['order_number']}")
    return response


@app.get("/api/orders/mine")
def my_orders(user=Depends(get_current_user), db=Depends(get_db)):
    return [serialize_doc(o) for o in orders.list_for_user(db, user["_id"])]


@app.post("/api/orders/{order_id}/cancel")
def cancel_order(order_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    return serialize_doc(orders.cancel_order(db, order_id, user))


# Admin: orders
@app.get("/api/admin/orders")
def admin_orders(search: Optional[str] = None, status: Optional[str] = None,
                 admin=Depends(require_admin), db=Depends(get_db)):
    return [serialize_doc(o) for o in orders.filter_orders(orders.list_all(db), search, status)]


@app.put("/api/admin/orders/{order_id}/status")
def admin_order_status(order_id: str, req: StatusUpdateRequest, admin=Depends(require_admin),
                       db=Depends(get_db)):
    return serialize_doc(orders.update_status(db, order_id, req.status, req.expected_version))


@app.put("/api/admin/orders/{order_id}/payment")
def admin_order_payment(order_id: str, req: PaymentStatusRequest, admin=Depends(require_admin),
                        db=Depends(get_db)):
    return serialize_doc(orders.mark_payment(db, order_id, req.payment_status))


@app.delete("/api/admin/orders/{order_id}")
def admin_delete_order(order_id: str, admin=Depends(require_admin), db=Depends(get_db)):
    orders.delete_order(db, order_id)
    return {"deleted": True}


# Merchant
@app.get("/api/merchant/orders")
def merchant_orders(search: Optional[str] = None, status: Optional[str] = None,
                    merchant=Depends(require_merchant), db=Depends(get_db)):
    found = orders.list_for_merchant(db, merchant_id_of(merchant))
    return [serialize_doc(o) for o in orders.filter_orders(found, search, status)]


@app.put("/api/merchant/orders/{order_id}/status")
def merchant_order_status(order_id: str, req: StatusUpdateRequest, merchant=Depends(require_merchant),
                          db=Depends(get_db)):
    updated = orders.update_status_as_merchant(db, order_id, merchant_id_of(merchant), req.status,
                                               req.expected_version)
    return serialize_doc(updated)


@app.get("/api/merchant/analytics")
def merchant_analytics(year: Optional[int] = None, merchant=Depends(require_merchant), db=Depends(get_db)):
    merchant_id = merchant_id_of(merchant)
    products = catalog.list_merchant_products(db, merchant_id)
    all_orders = orders.list_all(db)
    return serialize_doc(orders.compute_analytics(all_orders, products, merchant_id, year))


@app.get("/api/merchant/products")
def merchant_products(merchant=Depends(require_merchant), db=Depends(get_db)):
    return [serialize_doc(p) for p in catalog.list_merchant_products(db, merchant_id_of(merchant))]


@app.post("/api/merchant/products")
def merchant_create_product(req: Product, merchant=Depends(require_merchant), db=Depends(get_db)):
    return serialize_doc(catalog.create_product(db, req, merchant_id_of(merchant)))


@app.put("/api/merchant/products/{product_id}")
def merchant_update_product(product_id: str, req: ProductUpdateRequest, merchant=Depends(require_merchant),
                            db=Depends(get_db)):
    return serialize_doc(catalog.update_product(db, product_id, _changes(req), merchant_id_of(merchant)))


@app.delete("/api/merchant/products/{product_id}")
def merchant_delete_product(product_id: str, merchant=Depends(require_merchant), db=Depends(get_db)):
    catalog.delete_product(db, product_id, merchant_id_of(merchant))
    return {"deleted": True}


# Rentals
@app.post("/api/rentals")
def create_rental(req: RentalCreateRequest, user=Depends(get_current_user), db=Depends(get_db)):
    request = rentals.create_rental_request(
        db, user, req.product_id, req.customer_details.model_dump(), req.documents.model_dump(),
        req.start_date, req.duration, req.notes,
    )
    return serialize_doc(request)


@app.get("/api/rentals/mine")
def my_rentals(user=Depends(get_current_user), db=Depends(get_db)):
    return [serialize_doc(r) for r in rentals.list_for_user(db, user["_id"])]


@app.post("/api/rentals/{request_id}/cancel")
def cancel_rental(request_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    return serialize_doc(rentals.cancel_request(db, request_id, user))


@app.get("/api/admin/rentals")
def admin_rentals(status: Optional[str] = None, admin=Depends(require_admin), db=Depends(get_db)):
    everything = rentals.list_all(db)
    selected = rentals.list_all(db, status) if status and status != "all" else everything
    return {
        "requests": [serialize_doc(r) for r in selected],
        "counts": rentals.status_counts(everything),
    }


@app.put("/api/admin/rentals/{request_id}/status")
def admin_rental_status(request_id: str, req: RentalStatusRequest, admin=Depends(require_admin),
                        db=Depends(get_db)):
    return serialize_doc(rentals.update_status(db, request_id, req.status, req.admin_notes, req.expected_version))


@app.put("/api/admin/rentals/{request_id}/documents")
def admin_verify_document(request_id: str, req: DocumentVerifyRequest, admin=Depends(require_admin),
                          db=Depends(get_db)):
    return serialize_doc(rentals.verify_document(db, request_id, req.kind, req.verified))


@app.post("/api/verification/government")
async def government_verification(req: GovernmentVerifyRequest, user=Depends(get_current_user),
                                  checker: MockGovernmentVerifier = Depends(get_verifier)):
    result = await rentals.run_government_verification(checker, req.kind, req.number)
    return {**result.model_dump(), "message": verification_message(req.kind)}


# Payments
def _gateway_order(req: CreateOrderRequest, user: Dict[str, Any], db, bridge: payments.PaymentBridge):
    if req.target_kind and req.target_id:
        return payments.create_target_order(db, bridge, req.target_kind, req.target_id, user,
                                            req.currency, req.receipt)
    return bridge.create_order(req.amount, req.currency, req.receipt, req.notes)


@app.post("/api/payment/create-order")
def create_payment_order(req: CreateOrderRequest, user=Depends(get_current_user), db=Depends(get_db),
                         bridge: payments.PaymentBridge = Depends(get_bridge)):
    return _gateway_order(req, user, db, bridge)


@app.post("/api/payment/checkout-options")
def payment_checkout_options(req: CheckoutOptionsRequest, user=Depends(get_current_user), db=Depends(get_db),
                             bridge: payments.PaymentBridge = Depends(get_bridge)):
    order = _gateway_order(req, user, db, bridge)
    return bridge.checkout_options(order, user, req.description, req.prefill, req.notes)


@app.post("/api/payment/verify-payment")
def verify_payment(req: VerifyPaymentRequest, user=Depends(get_current_user), db=Depends(get_db),
                   bridge: payments.PaymentBridge = Depends(get_bridge)):
    return payments.verify_payment(db, bridge, req.model_dump(), user)


# Catalog
@app.get("/api/products")
def list_products(search: Optional[str] = None, category: Optional[str] = None,
                  rentable: Optional[bool] = None, db=Depends(get_db)):
    return [serialize_doc(p) for p in catalog.list_products(db, search, category, rentable)]


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    return serialize_doc(catalog.get_product(db, product_id))


@app.post("/api/admin/products")
def admin_create_product(req: Product, admin=Depends(require_admin), db=Depends(get_db)):
    return serialize_doc(catalog.create_product(db, req, req.merchant_id))


@app.put("/api/admin/products/{product_id}")
def admin_update_product(product_id: str, req: ProductUpdateRequest, admin=Depends(require_admin),
                         db=Depends(get_db)):
    return serialize_doc(catalog.update_product(db, product_id, _changes(req), None))


@app.delete("/api/admin/products/{product_id}")
def admin_delete_product(product_id: str, admin=Depends(require_admin), db=Depends(get_db)):
    catalog.delete_product(db, product_id, None)
    return {"deleted": True}


@app.get("/api/services")
def list_services(search: Optional[str] = None, category: Optional[str] = None, db=Depends(get_db)):
    return [serialize_doc(s) for s in catalog.list_services(db, search, category)]


@app.post("/api/admin/services")
def admin_create_service(req: Service, admin=Depends(require_admin), db=Depends(get_db)):
    return serialize_doc(catalog.create_service(db, req))


# Promos
@app.get("/api/admin/promos")
def admin_promos(status: Optional[str] = None, search: Optional[str] = None,
                 admin=Depends(require_admin), db=Depends(get_db)):
    return [serialize_doc(p) for p in catalog.list_promos(db, status, search)]


@app.post("/api/admin/promos")
def admin_create_promo(req: Promo, admin=Depends(require_admin), db=Depends(get_db)):
    return serialize_doc(catalog.create_promo(db, req))


@app.put("/api/admin/promos/{promo_id}")
def admin_update_promo(promo_id: str, req: PromoUpdateRequest, admin=Depends(require_admin), db=Depends(get_db)):
    return serialize_doc(catalog.update_promo(db, promo_id, _changes(req)))


@app.delete("/api/admin/promos/{promo_id}")
def admin_delete_promo(promo_id: str, admin=Depends(require_admin), db=Depends(get_db)):
    catalog.delete_promo(db, promo_id)
    return {"deleted": True}


# Contacts
@app.post("/api/contact")
def submit_contact(req: ContactRequest, db=Depends(get_db)):
    return {"id": catalog.submit_contact(db, Contact(**req.model_dump()))}


@app.get("/api/admin/contacts")
def admin_contacts(status: Optional[str] = None, admin=Depends(require_admin), db=Depends(get_db)):
    return [serialize_doc(c) for c in catalog.list_contacts(db, status)]


# Admin stats
@app.get("/api/admin/stats")
def admin_stats(admin=Depends(require_admin), db=Depends(get_db)):
    all_bookings: List[Dict[str, Any]] = bookings.list_all(db)
    return {
        "users": db["users"].count_documents({}),
        "doctors": db["users"].count_documents({"role": "doctor"}),
        "merchants": db["users"].count_documents({"role": "merchant"}),
        "bookings": len(all_bookings),
        "pending_bookings": len(bookings.filter_bookings(all_bookings, status="pending")),
        "orders": db["orders"].count_documents({}),
        "products": db["products"].count_documents({}),
        "rental_requests": db[rentals.COLLECTION].count_documents({}),
        "contacts": db["contacts"].count_documents({"status": "new"}),
    }


# Seed demo catalog on startup
@app.on_event("startup")
def seed_catalog_if_empty():
    if database.db is None:
        logger.warning("DATABASE_URL not set, skipping catalog seeding")
        return
    try:
        inserted = catalog.seed_catalog(database.db)
        logger.info("Seeded %d products and %d services", inserted["products"], inserted["services"])
    except PyMongoError:
        logger.exception("Seeding demo catalog failed")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
