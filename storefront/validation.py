"""
Request payload checks.

Every function here is free of I/O and returns a ``(value, error)`` pair:
the cleaned value with ``None``, or ``None`` with the :class:`ApiError`
describing why the payload was rejected.
"""
import base64
import binascii
import math
import re
from typing import Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId

from .errors import PayloadTooLarge, ValidationError

MEBIBYTE = 1024 * 1024
PROFILE_PICTURE_MAX_BYTES = 1 * MEBIBYTE
PRODUCT_IMAGE_MAX_BYTES = 5 * MEBIBYTE
PROFILE_PICTURE_SUBTYPES = {"jpeg", "jpg", "png"}
REGISTRATION_FIELDS = ("firstName", "secondName", "email", "password")
ORDER_TEXT_FIELDS = ("name", "address", "paymentType")
MAX_INT64 = 2 ** 63 - 1

DATA_URI_PATTERN = re.compile(r"^data:image/(\w+);base64,")


def is_filled(value) -> bool:
    return isinstance(value, str) and value != ""


def parse_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def parse_number(value) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isfinite(numeric):
        return numeric
    return None


def parse_quantity(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and 1 <= value <= MAX_INT64:
        return value
    return None


def decode_data_uri(value):
    """Split an image data-URI into ``(subtype, raw bytes)``."""
    match = DATA_URI_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        return None, ValidationError("Invalid base64 image format")
    try:
        data = base64.b64decode(value[match.end():], validate=True)
    except (binascii.Error, ValueError):
        return None, ValidationError("Invalid base64 image format")
    return (match.group(1), data), None


def validate_registration(payload: Dict):
    if not all(is_filled(payload.get(field)) for field in REGISTRATION_FIELDS):
        return None, ValidationError("All fields are required")
    return {field: payload[field] for field in REGISTRATION_FIELDS}, None


def validate_profile_picture(value):
    if not value:
        return "", None
    if not isinstance(value, str) or not value.startswith("data:image/"):
        return None, ValidationError("Invalid base64 image format")

    subtype = value.split(";")[0].split("/")[1]
    if subtype not in PROFILE_PICTURE_SUBTYPES:
        return None, ValidationError("Invalid image format. Use JPEG or PNG")

    decoded, error = decode_data_uri(value)
    if error:
        return None, error
    _, data = decoded
    if len(data) > PROFILE_PICTURE_MAX_BYTES:
        return None, PayloadTooLarge("Profile picture size exceeds 1MB limit")
    return value, None


def validate_login(payload: Dict):
    email = payload.get("email")
    password = payload.get("password")
    if not is_filled(email) or not is_filled(password):
        return None, ValidationError("Email and password are required")
    return {"email": email, "password": password}, None


def validate_image_upload(payload: Dict):
    image = payload.get("image")
    name = payload.get("name")
    price = payload.get("price")
    if not image or not is_filled(name) or price is None:
        return None, ValidationError("Image, name, and price are required")

    parsed_price = parse_number(price)
    if parsed_price is None or parsed_price < 0:
        return None, ValidationError("Price must be a positive number")

    decoded, error = decode_data_uri(image)
    if error:
        return None, error
    subtype, data = decoded
    if len(data) > PRODUCT_IMAGE_MAX_BYTES:
        return None, PayloadTooLarge("Image size exceeds 5MB limit")

    description = payload.get("description")
    return {
        "data": data,
        "subtype": subtype,
        "name": name,
        "price": parsed_price,
        "description": description if isinstance(description, str) else "",
    }, None


def validate_order(payload: Dict):
    products = payload.get("products")
    amount = payload.get("amount")
    if (
        not payload.get("userId")
        or products is None
        or amount is None
        or amount == ""
        or not all(is_filled(payload.get(field)) for field in ORDER_TEXT_FIELDS)
    ):
        return None, ValidationError("All fields are required")

    if not isinstance(products, list) or not products:
        return None, ValidationError("Products must be a non-empty array")

    parsed_amount = parse_number(amount)
    if parsed_amount is None or parsed_amount < 0:
        return None, ValidationError("Amount must be a non-negative number")

    user_id = parse_object_id(payload.get("userId"))
    if user_id is None:
        return None, ValidationError("Invalid user ID")

    line_items = []
    for item in products:
        raw_product_id = item.get("productId") if isinstance(item, dict) else None
        product_id = parse_object_id(raw_product_id)
        if product_id is None:
            return None, ValidationError(f"Invalid product ID: {raw_product_id}")
        quantity = parse_quantity(item.get("quantity"))
        if quantity is None:
            return None, ValidationError(f"Invalid quantity for product {raw_product_id}")
        line_items.append({"productId": product_id, "quantity": quantity})

    return {
        "userId": user_id,
        "products": line_items,
        "name": payload["name"],
        "address": payload["address"],
        "paymentType": payload["paymentType"],
        "amount": parsed_amount,
    }, None
