from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from storefront.errors import PayloadTooLarge, ValidationError
from storefront.serializers import serialize_value
from storefront.validation import (
    PROFILE_PICTURE_MAX_BYTES,
    decode_data_uri,
    parse_number,
    parse_object_id,
    parse_quantity,
    validate_image_upload,
    validate_order,
    validate_profile_picture,
    validate_registration,
)

from .conftest import data_uri


def order_payload(**overrides):
    payload = {
        "userId": str(ObjectId()),
        "products": [{"productId": str(ObjectId()), "quantity": 2}],
        "name": "Ada",
        "address": "12 Analytical Row",
        "paymentType": "card",
        "amount": 19.5,
    }
    payload.update(overrides)
    return payload


def test_parse_object_id_rejects_malformed_values():
    assert parse_object_id("not-an-id") is None
    assert parse_object_id(12) is None
    assert parse_object_id(None) is None
    valid = ObjectId()
    assert parse_object_id(str(valid)) == valid


@pytest.mark.parametrize("value, expected", [(3, 3.0), ("2.5", 2.5), ("nan", None), (True, None), ("abc", None)])
def test_parse_number(value, expected):
    assert parse_number(value) == expected


@pytest.mark.parametrize("value, expected", [(1, 1), (3.0, 3), (0, None), (-2, None), (1.5, None), ("2", None), (True, None)])
def test_parse_quantity(value, expected):
    assert parse_quantity(value) == expected


def test_decode_data_uri_returns_subtype_and_bytes():
    decoded, error = decode_data_uri("data:image/png;base64,aGVsbG8=")
    assert error is None
    assert decoded == ("png", b"hello")


@pytest.mark.parametrize("value", ["aGVsbG8=", "data:image/png,aGVsbG8=", "data:image/png;base64,***", None])
def test_decode_data_uri_rejects_malformed_input(value):
    decoded, error = decode_data_uri(value)
    assert decoded is None
    assert isinstance(error, ValidationError)
    assert error.message == "Invalid base64 image format"


def test_registration_requires_every_field():
    _, error = validate_registration({"firstName": "A", "secondName": "B", "email": "a@b.com"})
    assert error.message == "All fields are required"
    fields, error = validate_registration(
        {"firstName": "A", "secondName": "B", "email": "a@b.com", "password": "x", "extra": 1}
    )
    assert error is None
    assert set(fields) == {"firstName", "secondName", "email", "password"}


def test_profile_picture_limits():
    assert validate_profile_picture(None) == ("", None)

    _, error = validate_profile_picture("https://example.com/me.png")
    assert error.message == "Invalid base64 image format"

    _, error = validate_profile_picture(data_uri(8, "gif"))
    assert error.message == "Invalid image format. Use JPEG or PNG"

    exact = data_uri(PROFILE_PICTURE_MAX_BYTES, "jpeg")
    assert validate_profile_picture(exact) == (exact, None)

    _, error = validate_profile_picture(data_uri(PROFILE_PICTURE_MAX_BYTES + 1))
    assert isinstance(error, PayloadTooLarge)
    assert error.status_code == 413


def test_image_upload_price_rules():
    _, error = validate_image_upload({"image": data_uri(4), "name": "Lime"})
    assert error.message == "Image, name, and price are required"

    _, error = validate_image_upload({"image": data_uri(4), "name": "Lime", "price": -1})
    assert error.message == "Price must be a positive number"

    upload, error = validate_image_upload({"image": data_uri(4), "name": "Lime", "price": "0"})
    assert error is None
    assert upload["price"] == 0.0
    assert upload["subtype"] == "png"
    assert upload["description"] == ""


def test_order_validation_accepts_well_formed_payload():
    order, error = validate_order(order_payload())
    assert error is None
    assert isinstance(order["userId"], ObjectId)
    assert order["products"][0]["quantity"] == 2
    assert "paymentStatus" not in order


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"address": ""}, "All fields are required"),
        ({"amount": None}, "All fields are required"),
        ({"products": []}, "Products must be a non-empty array"),
        ({"products": {"productId": "x"}}, "Products must be a non-empty array"),
        ({"amount": -5}, "Amount must be a non-negative number"),
        ({"userId": "123"}, "Invalid user ID"),
        ({"products": [{"productId": "bad", "quantity": 1}]}, "Invalid product ID: bad"),
    ],
)
def test_order_validation_failures(overrides, message):
    order, error = validate_order(order_payload(**overrides))
    assert order is None
    assert error.status_code == 400
    assert error.message == message


def test_order_validation_rejects_fractional_quantity():
    product_id = str(ObjectId())
    _, error = validate_order(order_payload(products=[{"productId": product_id, "quantity": 1.5}]))
    assert error.message == f"Invalid quantity for product {product_id}"


def test_order_validation_accepts_zero_amount():
    order, error = validate_order(order_payload(amount=0))
    assert error is None
    assert order["amount"] == 0


def test_quantity_is_bounded_to_int64():
    assert parse_quantity(2 ** 63 - 1) == 2 ** 63 - 1
    assert parse_quantity(2 ** 63) is None
    assert parse_quantity(float(2 ** 70)) is None


def test_amount_is_normalized_to_float():
    order, error = validate_order(order_payload(amount=10 ** 400))
    assert order is None
    assert error.message == "Amount must be a non-negative number"

    order, error = validate_order(order_payload(amount=12))
    assert error is None
    assert isinstance(order["amount"], float)


def test_aware_datetimes_serialize_as_utc():
    moment = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert serialize_value(moment) == "2024-05-01T12:00:00Z"
    assert serialize_value(datetime(2024, 5, 1, 12, 0)) == "2024-05-01T12:00:00Z"


@pytest.mark.parametrize(
    "validate, payload, message",
    [
        (validate_registration, {"firstName": 42, "secondName": "B", "email": "a@b.com", "password": "x"}, "All fields are required"),
        (validate_image_upload, {"image": data_uri(4), "name": 7, "price": 1}, "Image, name, and price are required"),
        (validate_order, order_payload(address=["12 Analytical Row"]), "All fields are required"),
    ],
)
def test_non_string_text_fields_are_rejected(validate, payload, message):
    value, error = validate(payload)
    assert value is None
    assert error.message == message
