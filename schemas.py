"""
Database Schemas for the Healthcare platform

Each Pydantic model maps to a MongoDB collection. Field names are the canonical
snake_case ones; documents written by older clients may carry camelCase
aliases, which bookings.FIELD_ALIASES resolves on read.

Collections:
- accounts, sessions, login_attempts
- users
- carts
- bookings (appointments is the legacy copy)
- orders
- rentalRequests
- products, services, promos, contacts, payments
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["admin", "doctor", "merchant", "user"]
BookingStatus = Literal["pending", "confirmed", "completed", "cancelled", "no-show"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
Urgency = Literal["normal", "priority", "urgent"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
RentalStatus = Literal[
    "pending", "document_verification", "approved", "delivered", "returned", "rejected", "cancelled"
]
RentalPaymentStatus = Literal["pending", "advance_paid", "full_paid", "refunded"]


class Account(BaseModel):
    """
    Login identities
    Collection name: "accounts" (document id is the uid)
    """
    email: EmailStr = Field(..., description="Login email")
    password_hash: str = Field(..., description="BCrypt password hash")
    display_name: Optional[str] = None
    disabled: bool = Field(False, description="Disabled accounts cannot sign in")


class UserProfile(BaseModel):
    """
    User profiles
    Collection name: "users" (document id is the uid)
    """
    uid: str
    email: EmailStr
    display_name: str
    role: Role = "user"
    phone_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    specialization: Optional[str] = Field(None, description="Doctors only")
    doctor_id: Optional[str] = Field(None, description="Present iff role == doctor")
    merchant_id: Optional[str] = Field(None, description="Present iff role == merchant")
    status: Literal["active", "inactive"] = "active"


class CartItem(BaseModel):
    item_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    type: Literal["product", "service"] = "product"
    category: Optional[str] = None
    image: Optional[str] = None
    merchant_id: Optional[str] = None


class Cart(BaseModel):
    """
    One shopping cart per user
    Collection name: "carts" (document id is the user id)
    """
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    total_amount: float = 0.0


class PatientInfo(BaseModel):
    name: str
    email: EmailStr
    phone: str
    address: Optional[str] = None
    emergency_contact: Optional[str] = None


class Booking(BaseModel):
    """
    Appointments
    Collection name: "bookings"
    """
    invoice_id: str
    user_id: Optional[str] = None
    patient_info: PatientInfo
    service_id: Optional[str] = None
    service_name: Optional[str] = None
    doctor_id: Optional[str] = Field(None, description="Assigned doctor code, e.g. DOC001")
    preferred_doctor: Optional[str] = None
    appointment_date: str = Field(..., description="YYYY-MM-DD")
    appointment_time: str = Field(..., description="HH:MM")
    urgency: Urgency = "normal"
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    status: BookingStatus = "pending"
    payment_status: PaymentStatus = "pending"
    total_amount: float = Field(0, ge=0)


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    merchant_id: Optional[str] = None
    type: Literal["product", "service"] = "product"


class ShippingAddress(BaseModel):
    full_name: str
    phone: str
    email: EmailStr
    address: str
    city: str
    state: str
    pincode: str
    landmark: Optional[str] = None


class OrderSummary(BaseModel):
    subtotal: float
    tax: float
    shipping: float
    total: float


class Order(BaseModel):
    """
    Product orders
    Collection name: "orders"
    """
    order_number: str
    user_id: str
    customer_name: str
    customer_email: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: Literal["razorpay", "cod"] = "razorpay"
    summary: OrderSummary
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"


class CustomerDetails(BaseModel):
    full_name: str
    email: str
    phone: str
    address: str
    city: str = ""
    state: str = ""
    pincode: str = ""


class RentalDocuments(BaseModel):
    aadhar_number: str
    pan_number: str
    aadhar_image: Optional[str] = None
    pan_image: Optional[str] = None
    bank_cheque_image: Optional[str] = None
    aadhar_verified: bool = False
    pan_verified: bool = False
    cheque_submitted: bool = False


class RentalDetails(BaseModel):
    start_date: datetime
    end_date: datetime
    duration: int = Field(..., ge=1)
    rent_amount: float
    security_deposit: float
    advance_payment: float
    total_amount: float


class RentalRequest(BaseModel):
    """
    Equipment rental requests
    Collection name: "rentalRequests"
    """
    user_id: str
    product_id: str
    product_name: str
    customer_details: CustomerDetails
    documents: RentalDocuments
    rental_details: RentalDetails
    status: RentalStatus = "pending"
    payment_status: RentalPaymentStatus = "pending"
    delivery_address: str
    notes: Optional[str] = None
    admin_notes: Optional[str] = None


class Product(BaseModel):
    """
    Medical products, optionally rentable
    Collection name: "products"
    """
    name: str = Field(..., description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., ge=0, description="Price in INR")
    original_price: Optional[float] = Field(None, ge=0)
    category: str = Field(..., description="Product category")
    stock: int = Field(0, ge=0, description="Units in stock")
    image: Optional[str] = None
    rating: float = Field(4.0, ge=0, le=5)
    prescription: bool = Field(False, description="Requires a prescription")
    status: Literal["active", "inactive", "out-of-stock"] = "active"
    merchant_id: Optional[str] = None
    available_for_rent: bool = False
    rent_price: Optional[float] = Field(None, ge=0, description="Per rent period")
    rent_period: Optional[Literal["daily", "weekly", "monthly"]] = None
    min_rent_duration: Optional[int] = Field(None, ge=1)
    max_rent_duration: Optional[int] = Field(None, ge=1)
    security_deposit: Optional[float] = Field(None, ge=0)


class Service(BaseModel):
    """
    Bookable healthcare services
    Collection name: "services"
    """
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    duration: str = Field("30 min", description="Human readable duration")
    category: str
    image: Optional[str] = None


class Promo(BaseModel):
    """
    Promotional codes
    Collection name: "promos"
    """
    code: str
    description: str = ""
    discount_type: Literal["percentage", "fixed"] = "percentage"
    discount_value: float = Field(..., ge=0)
    min_order_amount: float = Field(0, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    used_count: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Literal["active", "inactive", "expired"] = "active"


class Contact(BaseModel):
    """
    Contact form submissions
    Collection name: "contacts"
    """
    name: str
    email: EmailStr
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str
    status: Literal["new", "read", "resolved"] = "new"


class PaymentRecord(BaseModel):
    """
    Verified gateway payments
    Collection name: "payments"
    """
    gateway_order_id: str
    gateway_payment_id: str
    signature: str
    verified: bool
    target_kind: Optional[Literal["booking", "order", "rental"]] = None
    target_id: Optional[str] = None
    notes: Dict[str, str] = Field(default_factory=dict)
