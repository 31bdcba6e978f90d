import hashlib
import hmac
from unittest import mock

import pytest

import payments
from errors import Forbidden, PaymentCancelled, ValidationFailed, VerificationFailed

SECRET = "test_secret"


def sign(order_id, payment_id, secret=SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def live_bridge(client=None):
    client = client or mock.Mock()
    return payments.PaymentBridge("rzp_test_key", SECRET, client=client)


def test_signature_check():
    good = sign("order_1", "pay_1")
    assert payments.verify_signature("order_1", "pay_1", good, SECRET)
    assert not payments.verify_signature("order_1", "pay_2", good, SECRET)
    assert not payments.verify_signature("order_1", "pay_1", good, "")


def test_amount_must_be_positive():
    with pytest.raises(ValidationFailed):
        payments.PaymentBridge().create_order(0)
    with pytest.raises(ValidationFailed):
        payments.PaymentBridge().create_order(-5)


def test_mock_order_without_keys():
    order = payments.PaymentBridge().create_order(499.99, receipt="r1", notes={"k": "v"})
    assert order["id"].startswith(payments.MOCK_ORDER_PREFIX)
    assert order["mock"] is True
    assert order["amount"] == 49999
    assert order["receipt"] == "r1"


def test_live_order_uses_gateway_client():
    client = mock.Mock()
    client.order.create.return_value = {"id": "order_live", "amount": 50000, "currency": "INR"}
    order = live_bridge(client).create_order(500)
    assert order["id"] == "order_live"
    sent = client.order.create.call_args.kwargs["data"]
    assert sent["amount"] == 50000 and sent["currency"] == "INR"


def test_gateway_failure_falls_back_to_mock():
    client = mock.Mock()
    client.order.create.side_effect = RuntimeError("gateway down")
    order = live_bridge(client).create_order(100)
    assert order["mock"] is True


def test_checkout_options_prefill_from_profile():
    bridge = live_bridge()
    order = {"id": "order_1", "amount": 1000, "currency": "INR"}
    options = bridge.checkout_options(order, {"display_name": "Asha", "email": "asha@example.com",
                                              "phone_number": "9876543210"})
    assert options["key"] == "rzp_test_key"
    assert options["order_id"] == "order_1"
    assert options["prefill"] == {"name": "Asha", "email": "asha@example.com", "contact": "9876543210"}
    assert options["mock"] is False


def test_verify_requires_all_fields():
    with pytest.raises(VerificationFailed) as exc:
        live_bridge().verify({"razorpay_order_id": "order_1"})
    assert exc.value.status_code == 400
    assert exc.value.detail == {"error": "Missing required payment verification parameters"}


def test_verify_signature_mismatch():
    payload = {"razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": "bad"}
    with pytest.raises(VerificationFailed) as exc:
        live_bridge().verify(payload)
    assert exc.value.detail == {"error": "Payment verification failed", "message": "Invalid signature"}


def test_mock_orders_only_pass_without_keys():
    payload = {"razorpay_order_id": "order_mock_1", "razorpay_payment_id": "pay_1", "razorpay_signature": "x"}
    assert payments.PaymentBridge().verify(payload)["success"] is True
    with pytest.raises(VerificationFailed):
        live_bridge().verify(payload)


def test_initiate_payment_cancelled():
    with pytest.raises(PaymentCancelled):
        payments.PaymentBridge().initiate_payment(100, lambda options: None)


def test_initiate_payment_verifies_response():
    bridge = live_bridge()
    bridge.client.order.create.return_value = {"id": "order_9", "amount": 10000, "currency": "INR"}

    def checkout(options):
        assert options["order_id"] == "order_9"
        return {
            "razorpay_order_id": "order_9",
            "razorpay_payment_id": "pay_9",
            "razorpay_signature": sign("order_9", "pay_9"),
        }

    assert bridge.initiate_payment(100, checkout)["razorpay_payment_id"] == "pay_9"


def test_non_ascii_signature_is_rejected():
    assert not payments.verify_signature("order_1", "pay_1", "é", SECRET)
    payload = {"razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": "é"}
    with pytest.raises(VerificationFailed):
        live_bridge().verify(payload)


USER = {"_id": "u1", "email": "asha@example.com"}


def booking_in(db, status="pending", booking_id="b1", amount=500):
    db["bookings"].insert_one({"_id": booking_id, "user_id": "u1", "status": "confirmed",
                               "payment_status": status, "total_amount": amount, "version": 1})


def gateway_order_for(db, kind, target_id, order_id="order_1"):
    client = mock.Mock()
    client.order.create.side_effect = lambda data: {"id": order_id, "currency": data["currency"],
                                                    "amount": data["amount"], "notes": data["notes"]}
    bridge = live_bridge(client)
    payments.create_target_order(db, bridge, kind, target_id, USER)
    return bridge


def callback(order_id, payment_id, target_id, kind="booking", signature=None):
    return {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature or sign(order_id, payment_id),
        "target_kind": kind,
        "target_id": target_id,
    }


def test_target_order_uses_stored_amount(db):
    booking_in(db, amount=750)
    bridge = gateway_order_for(db, "booking", "b1")
    sent = bridge.client.order.create.call_args.kwargs["data"]
    assert sent["amount"] == 75000
    assert sent["notes"] == {"target_kind": "booking", "target_id": "b1"}
    binding = db[payments.PAYMENT_ORDERS].find_one({"_id": "order_1"})
    assert (binding["target_kind"], binding["target_id"], binding["amount"]) == ("booking", "b1", 75000)


def test_target_order_only_for_owner(db):
    booking_in(db)
    with pytest.raises(Forbidden):
        payments.create_target_order(db, live_bridge(), "booking", "b1", {"_id": "someone-else"})
    assert db[payments.PAYMENT_ORDERS].count_documents({}) == 0


def test_verify_payment_marks_booking_paid(db):
    booking_in(db)
    bridge = gateway_order_for(db, "booking", "b1")
    result = payments.verify_payment(db, bridge, callback("order_1", "pay_1", "b1"), USER)
    assert result["payment_id"] == "pay_1"
    assert db["bookings"].find_one({"_id": "b1"})["payment_status"] == "paid"
    record = db["payments"].find_one({"gateway_payment_id": "pay_1"})
    assert record["verified"] is True and record["target_id"] == "b1"


def test_bad_signature_leaves_target_untouched(db):
    booking_in(db)
    bridge = gateway_order_for(db, "booking", "b1")
    db["bookings"].update_one({"_id": "b1"}, {"$set": {"payment_status": "paid"}})
    with pytest.raises(VerificationFailed):
        payments.verify_payment(db, bridge, callback("order_1", "pay_1", "b1", signature="forged"))
    assert db["bookings"].find_one({"_id": "b1"})["payment_status"] == "paid"
    assert db["payments"].count_documents({}) == 0


def test_payment_cannot_be_moved_to_another_target(db):
    booking_in(db, booking_id="cheap", amount=1)
    booking_in(db, booking_id="dear", amount=50000)
    bridge = gateway_order_for(db, "booking", "cheap", order_id="order_cheap")
    with pytest.raises(VerificationFailed) as exc:
        payments.verify_payment(db, bridge, callback("order_cheap", "pay_1", "dear"))
    assert exc.value.detail["message"] == "Payment order does not match target"
    assert db["bookings"].find_one({"_id": "dear"})["payment_status"] == "pending"
    assert db["payments"].count_documents({}) == 0


def test_unbound_gateway_order_is_rejected(db):
    booking_in(db)
    with pytest.raises(VerificationFailed):
        payments.verify_payment(db, live_bridge(), callback("order_elsewhere", "pay_1", "b1"))
    assert db["bookings"].find_one({"_id": "b1"})["payment_status"] == "pending"


def test_binding_belongs_to_payer(db):
    booking_in(db)
    bridge = gateway_order_for(db, "booking", "b1")
    with pytest.raises(VerificationFailed):
        payments.verify_payment(db, bridge, callback("order_1", "pay_1", "b1"), {"_id": "someone-else"})
    assert db["bookings"].find_one({"_id": "b1"})["payment_status"] == "pending"


def test_amount_change_invalidates_binding(db):
    booking_in(db, amount=500)
    bridge = gateway_order_for(db, "booking", "b1")
    db["bookings"].update_one({"_id": "b1"}, {"$set": {"total_amount": 900}})
    with pytest.raises(VerificationFailed) as exc:
        payments.verify_payment(db, bridge, callback("order_1", "pay_1", "b1"), USER)
    assert exc.value.detail["message"] == "Payment amount does not match target"


def test_untargeted_payment_is_only_recorded(db):
    payload = {"razorpay_order_id": "order_9", "razorpay_payment_id": "pay_9",
               "razorpay_signature": sign("order_9", "pay_9")}
    payments.verify_payment(db, live_bridge(), payload)
    assert db["payments"].find_one({"gateway_payment_id": "pay_9"})["target_id"] is None


def test_rental_payment_marks_advance_paid(db):
    db["rentalRequests"].insert_one({"_id": "r1", "user_id": "u1", "status": "approved", "payment_status": "pending",
                                     "rental_details": {"advance_payment": 1000}, "version": 1})
    bridge = payments.PaymentBridge()
    order = payments.create_target_order(db, bridge, "rental", "r1", USER)
    assert order["amount"] == 100000
    payments.verify_payment(db, bridge, callback(order["id"], "pay_5", "r1", kind="rental", signature="unused"), USER)
    assert db["rentalRequests"].find_one({"_id": "r1"})["payment_status"] == "advance_paid"
