"""
Payment gateway bridge

Orders are created through the Razorpay client when keys are configured. If
the keys are missing or the gateway call fails, a local mock order flagged
`mock: True` is returned instead so checkout keeps working in demo setups.

A completed checkout is trusted only after its signature checks out:

    HMAC_SHA256(order_id + "|" + payment_id, key_secret) == signature

Gateway orders for bookings, orders and rentals are bound to their target in
`payment_orders` when created, and a verified payment is applied only through
that binding.
"""
import hashlib
import hmac
import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import razorpay

import bookings
import config
import orders
import rentals
from database import create_document, get_or_404, now
from errors import Forbidden, PaymentCancelled, ValidationFailed, VerificationFailed
from schemas import PaymentRecord

logger = logging.getLogger(__name__)

CHECKOUT_SCRIPT = "https://checkout.razorpay.com/v1/checkout.js"
MOCK_ORDER_PREFIX = "order_mock_"
PAYMENT_ORDERS = "payment_orders"

REQUIRED_CALLBACK_FIELDS = ("razorpay_order_id", "razorpay_payment_id", "razorpay_signature")

PAID_STATUS = {"booking": "paid", "order": "paid", "rental": "advance_paid"}


def to_subunits(amount: float) -> int:
    return int(round(amount * 100))


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    if not secret:
        return False
    expected = hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected.encode(), (signature or "").encode())


class PaymentBridge:
    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None, client=None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.client = client
        if self.client is None and key_id and key_secret:
            self.client = razorpay.Client(auth=(key_id, key_secret))

    @property
    def live(self) -> bool:
        return self.client is not None

    def _mock_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": f"{MOCK_ORDER_PREFIX}{int(time.time() * 1000)}{random.randint(0, 999)}",
            "entity": "order",
            "amount": amount,
            "amount_paid": 0,
            "amount_due": amount,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "created_at": int(time.time()),
            "notes": notes,
            "mock": True,
        }

    def create_order(self, amount: float, currency: str = "INR", receipt: Optional[str] = None,
                     notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not amount or amount <= 0:
            raise ValidationFailed({"amount": "Amount is required and must be greater than 0"})
        subunits = to_subunits(amount)
        receipt = receipt or f"receipt_{int(time.time() * 1000)}"
        notes = notes or {}

        if self.live:
            try:
                order = self.client.order.create(data={
                    "amount": subunits,
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes,
                })
                logger.info("Gateway order %s created", order.get("id"))
                return order
            except Exception:
                logger.exception("Gateway order creation failed, falling back to mock order")
        else:
            logger.info("Gateway keys not configured, creating mock order")
        return self._mock_order(subunits, currency, receipt, notes)

    def checkout_options(self, order: Dict[str, Any], profile: Optional[Dict[str, Any]] = None,
                         description: Optional[str] = None, prefill: Optional[Dict[str, str]] = None,
                         notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Configuration for the hosted checkout widget, pre-filled with the user's contact details."""
        profile = profile or {}
        prefill = prefill or {}
        return {
            "key": self.key_id,
            "amount": order["amount"],
            "currency": order["currency"],
            "name": config.COMPANY["name"],
            "description": description or config.COMPANY["description"],
            "image": config.COMPANY["logo"],
            "order_id": order["id"],
            "prefill": {
                "name": prefill.get("name") or profile.get("display_name") or "",
                "email": prefill.get("email") or profile.get("email") or "",
                "contact": prefill.get("contact") or profile.get("phone_number") or "",
            },
            "notes": notes or order.get("notes") or {},
            "theme": {"color": config.COMPANY["theme"]},
            "script": CHECKOUT_SCRIPT,
            "mock": bool(order.get("mock")),
        }

    def verify(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        missing = [f for f in REQUIRED_CALLBACK_FIELDS if not payload.get(f)]
        if missing:
            raise VerificationFailed("Missing required payment verification parameters", None)
        order_id = payload["razorpay_order_id"]
        payment_id = payload["razorpay_payment_id"]
        if order_id.startswith(MOCK_ORDER_PREFIX) and not self.live:
            logger.info("Accepting mock payment %s for %s", payment_id, order_id)
        elif not verify_signature(order_id, payment_id, payload["razorpay_signature"], self.key_secret):
            logger.warning("Signature mismatch for order %s payment %s", order_id, payment_id)
            raise VerificationFailed()
        return {
            "success": True,
            "message": "Payment verified successfully",
            "payment_id": payment_id,
            "order_id": order_id,
        }

    def initiate_payment(self, amount: float, open_checkout: Callable[[Dict[str, Any]], Optional[Dict[str, Any]]],
                         currency: str = "INR", profile: Optional[Dict[str, Any]] = None,
                         description: Optional[str] = None, prefill: Optional[Dict[str, str]] = None,
                         notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Create a gateway order, hand the widget options to `open_checkout` and
        verify what it returns. `open_checkout` returns the callback payload, or
        None when the user dismisses the widget.
        """
        order = self.create_order(amount, currency, notes=notes)
        options = self.checkout_options(order, profile, description, prefill, notes)
        response = open_checkout(options)
        if response is None:
            logger.info("Checkout for %s dismissed", order["id"])
            raise PaymentCancelled()
        self.verify(response)
        return response


def default_bridge() -> PaymentBridge:
    return PaymentBridge(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET)


# Target binding

def _load_target(db, kind: str, target_id: str) -> Dict[str, Any]:
    if kind == "booking":
        return bookings.get_booking(db, target_id)
    if kind == "order":
        return get_or_404(db, "orders", target_id, "Order")
    if kind == "rental":
        return rentals.get_request(db, target_id)
    raise ValidationFailed({"target_kind": f"Unknown payment target '{kind}'"})


def amount_due(kind: str, target: Dict[str, Any]) -> float:
    """What the platform charges for a target: order total, booking amount or rental advance."""
    if kind == "order":
        return float(target["summary"]["total"])
    if kind == "rental":
        return float(target["rental_details"]["advance_payment"])
    return float(target.get("total_amount") or 0)


def create_target_order(db, bridge: PaymentBridge, kind: str, target_id: str, user: Dict[str, Any],
                        currency: str = "INR", receipt: Optional[str] = None) -> Dict[str, Any]:
    """
    Create a gateway order for a booking, order or rental the user owns. The
    amount comes from the stored target, and the gateway order id is bound to
    the target in `payment_orders` so verification can check the pairing.
    """
    target = _load_target(db, kind, target_id)
    if target.get("user_id") != user["_id"]:
        raise Forbidden(f"You can only pay for your own {kind}")
    if target.get("payment_status") == PAID_STATUS[kind]:
        raise ValidationFailed({"payment_status": f"This {kind} is already paid"})

    notes = {"target_kind": kind, "target_id": target_id}
    order = bridge.create_order(amount_due(kind, target), currency, receipt=receipt, notes=notes)
    db[PAYMENT_ORDERS].insert_one({
        "_id": order["id"],
        "target_kind": kind,
        "target_id": target_id,
        "user_id": user["_id"],
        "amount": order["amount"],
        "currency": order["currency"],
        "created_at": now(),
    })
    logger.info("Gateway order %s bound to %s %s", order["id"], kind, target_id)
    return order


def _check_binding(db, kind: str, target_id: str, gateway_order_id: str, user_id: Optional[str]) -> None:
    binding = db[PAYMENT_ORDERS].find_one({"_id": gateway_order_id})
    if (not binding or binding["target_kind"] != kind or binding["target_id"] != target_id
            or (user_id is not None and binding["user_id"] != user_id)):
        logger.warning("Gateway order %s was not issued for %s %s", gateway_order_id, kind, target_id)
        raise VerificationFailed("Payment verification failed", "Payment order does not match target")
    if binding["amount"] != to_subunits(amount_due(kind, _load_target(db, kind, target_id))):
        logger.warning("Gateway order %s amount no longer matches %s %s", gateway_order_id, kind, target_id)
        raise VerificationFailed("Payment verification failed", "Payment amount does not match target")


def _apply_to_target(db, kind: str, target_id: str, status: str, payment: Dict[str, Any]):
    if kind == "booking":
        bookings.mark_payment(db, target_id, status)
    elif kind == "order":
        orders.mark_payment(db, target_id, status, payment)
    elif kind == "rental":
        rentals.mark_payment(db, target_id, status)


def verify_payment(db, bridge: PaymentBridge, payload: Dict[str, Any],
                   user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Verify a checkout callback and, when it names a target, flip the owning
    booking / order / rental request to paid. Nothing is written unless the
    signature checks out and the gateway order was issued for that target, to
    the paying user, at its current amount.
    """
    kind = payload.get("target_kind")
    target_id = payload.get("target_id")
    result = bridge.verify(payload)
    if kind and target_id:
        _check_binding(db, kind, target_id, payload["razorpay_order_id"], user["_id"] if user else None)

    record = PaymentRecord(
        gateway_order_id=payload["razorpay_order_id"],
        gateway_payment_id=payload["razorpay_payment_id"],
        signature=payload["razorpay_signature"],
        verified=True,
        target_kind=kind,
        target_id=target_id,
        notes={k: str(v) for k, v in (payload.get("notes") or {}).items()},
    )
    create_document("payments", record, database=db)
    if kind and target_id:
        _apply_to_target(db, kind, target_id, PAID_STATUS[kind], {
            "gateway_order_id": record.gateway_order_id,
            "gateway_payment_id": record.gateway_payment_id,
        })
        logger.info("%s %s marked %s", kind, target_id, PAID_STATUS[kind])
    return result
