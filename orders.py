"""
Product orders

The order summary (subtotal, tax, shipping, total) is computed once when the
order is placed and never recomputed; line items are frozen with it. Line
prices are taken from the catalog at that moment, falling back to the cart
price only for items no longer listed.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional

from database import as_utc, create_document, generate_reference, get_or_404, versioned_update
from errors import Forbidden, NotFound, ValidationFailed
from schemas import Order, OrderItem, OrderSummary, ShippingAddress
from transitions import ORDER_TRANSITIONS, check_transition

logger = logging.getLogger(__name__)

TAX_RATE = 0.18
SHIPPING_FEE = 0


def compute_summary(subtotal: float) -> OrderSummary:
    tax = round(subtotal * TAX_RATE)
    shipping = SHIPPING_FEE
    return OrderSummary(subtotal=subtotal, tax=tax, shipping=shipping, total=subtotal + tax + shipping)


def place_order(db, user: Dict[str, Any], cart: Dict[str, Any], shipping_address: ShippingAddress,
                payment_method: str = "razorpay", payment_status: str = "pending") -> Dict[str, Any]:
    items = cart.get("items", [])
    if not items:
        raise ValidationFailed({"cart": "Cart is empty"})

    order_items = []
    for item in items:
        kind = item.get("type", "product")
        listed = db["products" if kind == "product" else "services"].find_one({"_id": item["item_id"]}) or {}
        merchant_id = listed.get("merchant_id") or item.get("merchant_id")
        order_items.append(OrderItem(
            product_id=item["item_id"],
            name=item["name"],
            price=listed.get("price", item["price"]),
            quantity=item["quantity"],
            merchant_id=merchant_id,
            type=kind,
        ))
    subtotal = sum(i.price * i.quantity for i in order_items)

    order = Order(
        order_number=generate_reference("ORD", 3),
        user_id=user["_id"],
        customer_name=shipping_address.full_name,
        customer_email=shipping_address.email,
        items=order_items,
        shipping_address=shipping_address,
        payment_method=payment_method,
        summary=compute_summary(subtotal),
        payment_status=payment_status,
    )
    order_id = create_document("orders", order, database=db)
    logger.info("Order %s (%s) placed by %s", order.order_number, order_id, user["_id"])
    return db["orders"].find_one({"_id": order_id})


def list_for_user(db, user_id: str) -> List[Dict[str, Any]]:
    return list(db["orders"].find({"user_id": user_id}).sort("created_at", -1))


def list_all(db) -> List[Dict[str, Any]]:
    return list(db["orders"].find({}).sort("created_at", -1))


def merchant_owns(item: Dict[str, Any], merchant_id: str, product_ids=()) -> bool:
    return item.get("merchant_id") == merchant_id or item.get("product_id") in product_ids


def list_for_merchant(db, merchant_id: str) -> List[Dict[str, Any]]:
    """No merchant index on orders: load all and keep those with one of the merchant's items."""
    product_ids = {p["_id"] for p in db["products"].find({"merchant_id": merchant_id}, {"_id": 1})}
    orders = db["orders"].find({}).sort("created_at", -1)
    return [
        o for o in orders
        if any(merchant_owns(i, merchant_id, product_ids) for i in o.get("items", []))
    ]


def filter_orders(orders: List[Dict[str, Any]], search: Optional[str] = None,
                  status: Optional[str] = None) -> List[Dict[str, Any]]:
    result = orders
    if status and status != "all":
        result = [o for o in result if o.get("status") == status]
    if search:
        term = search.lower()
        result = [
            o for o in result
            if term in (o.get("order_number") or "").lower()
            or term in (o.get("customer_name") or "").lower()
            or term in (o.get("customer_email") or "").lower()
        ]
    return result


def update_status(db, order_id: str, new_status: str, expected_version: Optional[int] = None) -> Dict[str, Any]:
    order = get_or_404(db, "orders", order_id, "Order")
    current = order.get("status", "pending")
    if not check_transition(ORDER_TRANSITIONS, "order", current, new_status):
        return order
    version = order.get("version") if expected_version is None else expected_version
    updated = versioned_update(db, "orders", order_id, version, {"status": new_status}, "Order")
    logger.info("Order %s %s -> %s", order_id, current, new_status)
    return updated


def update_status_as_merchant(db, order_id: str, merchant_id: str, new_status: str,
                              expected_version: Optional[int] = None) -> Dict[str, Any]:
    order = get_or_404(db, "orders", order_id, "Order")
    product_ids = {p["_id"] for p in db["products"].find({"merchant_id": merchant_id}, {"_id": 1})}
    if not any(merchant_owns(i, merchant_id, product_ids) for i in order.get("items", [])):
        raise Forbidden("Order has none of your products")
    return update_status(db, order_id, new_status, expected_version)


def cancel_order(db, order_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    order = get_or_404(db, "orders", order_id, "Order")
    if order["user_id"] != user["_id"]:
        raise Forbidden("You can only cancel your own orders")
    return update_status(db, order_id, "cancelled")


def mark_payment(db, order_id: str, payment_status: str, payment: Optional[Dict[str, Any]] = None):
    order = get_or_404(db, "orders", order_id, "Order")
    changes: Dict[str, Any] = {"payment_status": payment_status}
    if payment:
        changes["payment"] = payment
    return versioned_update(db, "orders", order_id, order.get("version"), changes, "Order")


def delete_order(db, order_id: str) -> None:
    if not db["orders"].delete_one({"_id": order_id}).deleted_count:
        raise NotFound("Order")
    logger.info("Order %s deleted", order_id)


def compute_analytics(orders: List[Dict[str, Any]], products: List[Dict[str, Any]],
                      merchant_id: str, year: Optional[int] = None) -> Dict[str, Any]:
    """
    Revenue counts only the merchant's own line items. Top products are ranked
    by stock on hand, not by sales.
    """
    product_ids = {p["_id"] for p in products}
    merchant_orders = [
        o for o in orders
        if any(merchant_owns(i, merchant_id, product_ids) for i in o.get("items", []))
    ]

    year = year or datetime.now().year
    monthly = OrderedDict((m, 0.0) for m in range(1, 13))
    total_revenue = 0.0
    for order in merchant_orders:
        revenue = sum(
            float(i["price"]) * int(i["quantity"])
            for i in order.get("items", [])
            if merchant_owns(i, merchant_id, product_ids)
        )
        total_revenue += revenue
        created = order.get("created_at")
        if isinstance(created, datetime) and as_utc(created).year == year:
            monthly[as_utc(created).month] += revenue

    top_products = sorted(products, key=lambda p: p.get("stock") or 0, reverse=True)[:5]
    return {
        "total_revenue": round(total_revenue, 2),
        "total_orders": len(merchant_orders),
        "total_products": len(products),
        "average_order_value": round(total_revenue / len(merchant_orders), 2) if merchant_orders else 0,
        "monthly_revenue": [round(v, 2) for v in monthly.values()],
        "top_products": top_products,
        "recent_orders": merchant_orders[:5],
    }
