"""
Order placement and order read expansion.

Orders reference users and catalog images by id without any database-level
foreign keys. ``place_order`` runs every existence check before the single
insert, since no rollback exists once the order is written.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .errors import NotFoundError
from .repository import Datastore
from .validation import validate_order

PENDING_PAYMENT = "pending"
ORDER_USER_FIELDS = ("firstName", "secondName", "email")
ORDER_PRODUCT_FIELDS = ("name", "price")


def distinct_product_ids(line_items: List[Dict]) -> list:
    seen = set()
    distinct = []
    for item in line_items:
        product_id = item.get("productId")
        if product_id is None or product_id in seen:
            continue
        seen.add(product_id)
        distinct.append(product_id)
    return distinct


def place_order(datastore: Datastore, payload: Dict, now: Optional[datetime] = None):
    order, error = validate_order(payload)
    if error:
        return None, error

    if datastore.users.find_by_id(order["userId"]) is None:
        return None, NotFoundError("User not found")

    product_ids = distinct_product_ids(order["products"])
    if datastore.images.count_existing(product_ids) < len(product_ids):
        return None, NotFoundError("One or more products not found")

    order["paymentStatus"] = PENDING_PAYMENT
    order["createdAt"] = now or datetime.now(timezone.utc)
    return datastore.orders.create(order), None


def expand_orders(datastore: Datastore, orders: List[Dict]) -> List[Dict]:
    """Inline each order's user summary and each line item's name and price."""
    user_ids = {order.get("userId") for order in orders if order.get("userId") is not None}
    product_ids = set()
    for order in orders:
        product_ids.update(distinct_product_ids(order.get("products") or []))

    users = datastore.users.find_by_ids(user_ids, ORDER_USER_FIELDS) if user_ids else {}
    products = (
        datastore.images.find_by_ids(product_ids, ORDER_PRODUCT_FIELDS) if product_ids else {}
    )

    expanded = []
    for order in orders:
        document = dict(order)
        document["userId"] = users.get(order.get("userId"))
        document["products"] = _expand_line_items(order.get("products") or [], products)
        expanded.append(document)
    return expanded


def expand_order_products(datastore: Datastore, order: Dict) -> Dict:
    """Inline the full catalog record behind each of one order's line items."""
    line_items = order.get("products") or []
    product_ids = distinct_product_ids(line_items)
    products = datastore.images.find_by_ids(product_ids) if product_ids else {}

    document = dict(order)
    document["products"] = _expand_line_items(line_items, products)
    return document


def _expand_line_items(line_items: List[Dict], products: Dict) -> List[Dict]:
    expanded = []
    for item in line_items:
        expanded_item = dict(item)
        expanded_item["productId"] = products.get(item.get("productId"))
        expanded.append(expanded_item)
    return expanded
