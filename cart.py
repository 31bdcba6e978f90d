"""
Shopping cart

A cart is a single aggregate per user, rewritten whole on every change. Each
rewrite is conditional on the version that was read, so two tabs racing on the
same cart get a StaleWrite instead of silently losing an update.
"""
import logging
from typing import Any, Dict, List, Optional

from database import create_document, versioned_update
from errors import NotFound, ValidationFailed
from schemas import Cart, CartItem

logger = logging.getLogger(__name__)


def calculate_total(items: List[Dict[str, Any]]) -> float:
    return sum(float(i["price"]) * int(i["quantity"]) for i in items)


def cart_total(cart: Optional[Dict[str, Any]]) -> float:
    if not cart:
        return 0.0
    return cart.get("total_amount", 0.0)


def cart_item_count(cart: Optional[Dict[str, Any]]) -> int:
    if not cart:
        return 0
    return sum(int(i["quantity"]) for i in cart.get("items", []))


def load_cart(db, user_id: str) -> Dict[str, Any]:
    cart = db["carts"].find_one({"_id": user_id})
    if cart:
        return cart
    create_document("carts", {"_id": user_id, **Cart(user_id=user_id).model_dump()}, database=db)
    logger.info("Created new cart for user %s", user_id)
    return db["carts"].find_one({"_id": user_id})


def _save(db, cart: Dict[str, Any], items: List[Dict[str, Any]], expected_version: Optional[int]) -> Dict[str, Any]:
    version = cart.get("version") if expected_version is None else expected_version
    return versioned_update(
        db, "carts", cart["_id"], version,
        {"items": items, "total_amount": calculate_total(items)},
        "Cart",
    )


def add_to_cart(db, user_id: str, item: Dict[str, Any], quantity: int = 1,
                expected_version: Optional[int] = None) -> Dict[str, Any]:
    cart = load_cart(db, user_id)
    items = [dict(i) for i in cart.get("items", [])]
    for existing in items:
        if existing["item_id"] == item["item_id"]:
            existing["quantity"] = int(existing["quantity"]) + quantity
            break
    else:
        items.append(CartItem(**{**item, "quantity": quantity}).model_dump())
    items = [i for i in items if int(i["quantity"]) > 0]
    return _save(db, cart, items, expected_version)


def catalog_item(db, item_id: str, item_type: str = "product") -> Dict[str, Any]:
    """Cart line for a catalog entry; name, price and merchant always come from the catalog."""
    collection = "products" if item_type == "product" else "services"
    doc = db[collection].find_one({"_id": item_id})
    if not doc:
        raise NotFound(item_type.capitalize())
    if doc.get("status") in ("inactive", "out-of-stock"):
        raise ValidationFailed({"item_id": f"{doc['name']} is not available"})
    return {
        "item_id": item_id,
        "name": doc["name"],
        "price": float(doc["price"]),
        "type": item_type,
        "category": doc.get("category"),
        "image": doc.get("image"),
        "merchant_id": doc.get("merchant_id"),
    }


def add_catalog_item(db, user_id: str, item_id: str, item_type: str = "product", quantity: int = 1,
                     expected_version: Optional[int] = None) -> Dict[str, Any]:
    return add_to_cart(db, user_id, catalog_item(db, item_id, item_type), quantity, expected_version)


def remove_from_cart(db, user_id: str, item_id: str, expected_version: Optional[int] = None) -> Dict[str, Any]:
    cart = load_cart(db, user_id)
    items = [i for i in cart.get("items", []) if i["item_id"] != item_id]
    return _save(db, cart, items, expected_version)


def update_quantity(db, user_id: str, item_id: str, quantity: int,
                    expected_version: Optional[int] = None) -> Dict[str, Any]:
    if quantity <= 0:
        return remove_from_cart(db, user_id, item_id, expected_version)
    cart = load_cart(db, user_id)
    items = [{**i, "quantity": quantity} if i["item_id"] == item_id else dict(i) for i in cart.get("items", [])]
    return _save(db, cart, items, expected_version)


def clear_cart(db, user_id: str, expected_version: Optional[int] = None) -> Dict[str, Any]:
    cart = load_cart(db, user_id)
    return _save(db, cart, [], expected_version)
