from datetime import datetime, timezone

import pytest

import cart
import orders
from errors import Forbidden, InvalidTransition, NotFound, ValidationFailed
from schemas import ShippingAddress

USER = {"_id": "u1", "email": "asha@example.com"}
ADDRESS = ShippingAddress(
    full_name="Asha Verma", phone="9876543210", email="asha@example.com",
    address="12 MG Road", city="Pune", state="Maharashtra", pincode="411001",
)


def filled_cart(db):
    db["products"].insert_one({"_id": "p1", "name": "BP Monitor", "price": 2500, "merchant_id": "MER1"})
    cart.add_to_cart(db, "u1", {"item_id": "p1", "name": "BP Monitor", "price": 2500.0}, quantity=2)
    return cart.add_to_cart(db, "u1", {"item_id": "p2", "name": "Sanitizer", "price": 199.0, "merchant_id": "MER2"})


def test_summary():
    summary = orders.compute_summary(1000)
    assert (summary.subtotal, summary.tax, summary.shipping, summary.total) == (1000, 180, 0, 1180)
    odd = orders.compute_summary(199)
    assert odd.tax == 36
    assert odd.total == odd.subtotal + odd.tax + odd.shipping


def test_place_order_freezes_summary_and_merchants(db):
    order = orders.place_order(db, USER, filled_cart(db), ADDRESS)
    assert order["order_number"].startswith("ORD")
    assert order["status"] == "pending"
    assert order["summary"]["subtotal"] == 5199
    assert order["summary"]["total"] == 5199 + round(5199 * 0.18)
    assert {i["product_id"]: i["merchant_id"] for i in order["items"]} == {"p1": "MER1", "p2": "MER2"}


def test_place_order_prices_from_catalog(db):
    db["products"].insert_one({"_id": "p1", "name": "BP Monitor", "price": 2500, "merchant_id": "MER1"})
    stale = {"_id": "u1", "items": [{"item_id": "p1", "name": "BP Monitor", "price": 1.0, "quantity": 2,
                                     "type": "product", "merchant_id": "MER9"}], "total_amount": 2.0}
    order = orders.place_order(db, USER, stale, ADDRESS)
    assert order["items"][0]["price"] == 2500
    assert order["items"][0]["merchant_id"] == "MER1"
    assert order["summary"]["subtotal"] == 5000


def test_empty_cart_is_rejected(db):
    with pytest.raises(ValidationFailed):
        orders.place_order(db, USER, cart.load_cart(db, "u1"), ADDRESS)


def test_order_lifecycle(db):
    order = orders.place_order(db, USER, filled_cart(db), ADDRESS)
    with pytest.raises(InvalidTransition):
        orders.update_status(db, order["_id"], "delivered")
    for status in ("processing", "shipped", "delivered"):
        order = orders.update_status(db, order["_id"], status)
    assert order["status"] == "delivered"
    with pytest.raises(InvalidTransition):
        orders.update_status(db, order["_id"], "cancelled")


def test_cancel_own_order_only(db):
    order = orders.place_order(db, USER, filled_cart(db), ADDRESS)
    with pytest.raises(Forbidden):
        orders.cancel_order(db, order["_id"], {"_id": "u2"})
    assert orders.cancel_order(db, order["_id"], USER)["status"] == "cancelled"


def test_merchant_scope(db):
    order = orders.place_order(db, USER, filled_cart(db), ADDRESS)
    assert [o["_id"] for o in orders.list_for_merchant(db, "MER1")] == [order["_id"]]
    assert orders.list_for_merchant(db, "MER3") == []
    with pytest.raises(Forbidden):
        orders.update_status_as_merchant(db, order["_id"], "MER3", "processing")
    assert orders.update_status_as_merchant(db, order["_id"], "MER2", "processing")["status"] == "processing"


def test_filter_orders():
    rows = [
        {"order_number": "ORD1", "customer_name": "Asha", "customer_email": "a@x.com", "status": "pending"},
        {"order_number": "ORD2", "customer_name": "Ravi", "customer_email": "r@x.com", "status": "shipped"},
    ]
    assert orders.filter_orders(rows, search="ravi") == [rows[1]]
    assert orders.filter_orders(rows, status="pending") == [rows[0]]
    assert orders.filter_orders(rows, search="ord", status="all") == rows


def test_mark_payment(db):
    order = orders.place_order(db, USER, filled_cart(db), ADDRESS)
    paid = orders.mark_payment(db, order["_id"], "paid", {"gateway_payment_id": "pay_1"})
    assert paid["payment_status"] == "paid"
    assert paid["payment"]["gateway_payment_id"] == "pay_1"


def test_analytics_counts_only_merchant_items():
    products = [{"_id": "p1", "stock": 3}, {"_id": "p3", "stock": 40}]
    orders_ = [
        {"_id": "o1", "created_at": datetime(2030, 3, 10, tzinfo=timezone.utc), "items": [
            {"product_id": "p1", "price": 100, "quantity": 2},
            {"product_id": "x", "merchant_id": "MER9", "price": 999, "quantity": 1},
        ]},
        {"_id": "o2", "created_at": datetime(2030, 5, 1), "items": [
            {"product_id": "p3", "price": 50, "quantity": 1, "merchant_id": "MER1"},
        ]},
        {"_id": "o3", "created_at": datetime(2030, 5, 2), "items": [
            {"product_id": "y", "merchant_id": "MER9", "price": 10, "quantity": 1},
        ]},
    ]
    stats = orders.compute_analytics(orders_, products, "MER1", year=2030)
    assert stats["total_revenue"] == 250
    assert stats["total_orders"] == 2
    assert stats["total_products"] == 2
    assert stats["average_order_value"] == 125
    assert stats["monthly_revenue"][2] == 200
    assert stats["monthly_revenue"][4] == 50
    assert sum(stats["monthly_revenue"]) == 250
    assert [p["_id"] for p in stats["top_products"]] == ["p3", "p1"]
    assert [o["_id"] for o in stats["recent_orders"]] == ["o1", "o2"]


def test_analytics_without_orders():
    stats = orders.compute_analytics([], [], "MER1")
    assert stats["average_order_value"] == 0
    assert stats["monthly_revenue"] == [0.0] * 12


def test_admin_list_and_delete(db):
    first = orders.place_order(db, USER, filled_cart(db), ADDRESS)
    assert [o["_id"] for o in orders.list_all(db)] == [first["_id"]]
    orders.delete_order(db, first["_id"])
    assert orders.list_all(db) == []
    with pytest.raises(NotFound):
        orders.delete_order(db, first["_id"])
