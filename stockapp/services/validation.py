"""Form and payload validation shared by the stock services.

Each ``validate_*`` function takes a raw mapping (form data or JSON) and
returns a cleaned dict, raising :class:`ValidationError` for the first field
that fails. Nothing is written before validation passes.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from urllib.parse import urlparse

from stockapp.errors import ValidationError
from stockapp.models import CourseStatus, PurchaseStatus

MAX_PRICE = Decimal("999999.99")


def clean_text(value: Any) -> str | None:
    text = ("" if value is None else str(value)).strip()
    return text or None


def require_text(data: Mapping, field: str, label: str, *, max_length: int) -> str:
    text = clean_text(data.get(field))
    if not text:
        raise ValidationError(field, f"{label} is required")
    if len(text) > max_length:
        raise ValidationError(field, f"{label} must be less than {max_length} characters")
    return text


def optional_text(data: Mapping, field: str, label: str, *, max_length: int) -> str | None:
    text = clean_text(data.get(field))
    if text and len(text) > max_length:
        raise ValidationError(field, f"{label} must be less than {max_length} characters")
    return text


def parse_quantity(
    value: Any,
    field: str = "quantity",
    *,
    minimum: int = 1,
    maximum: int = 99999,
) -> int:
    if isinstance(value, bool):
        raise ValidationError(field, "Quantity must be a whole number")
    if isinstance(value, int):
        number = value
    else:
        text = clean_text(value)
        if text is None:
            raise ValidationError(field, "Quantity is required")
        try:
            decimal_value = Decimal(text)
        except (InvalidOperation, ValueError):
            raise ValidationError(field, "Quantity must be a whole number") from None
        if decimal_value != decimal_value.to_integral_value():
            raise ValidationError(field, "Quantity must be a whole number")
        number = int(decimal_value)

    if number < minimum:
        if minimum == 1:
            raise ValidationError(field, "Quantity must be greater than 0")
        raise ValidationError(field, f"Quantity must be at least {minimum}")
    if number > maximum:
        raise ValidationError(field, f"Quantity must be less than {maximum + 1:,}")
    return number


def parse_price(value: Any, field: str = "price") -> Decimal:
    text = clean_text(value)
    if text is None:
        raise ValidationError(field, "Price is required")
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        raise ValidationError(field, "Enter a valid price.") from None
    if not number.is_finite() or number <= 0:
        raise ValidationError(field, "Price must be greater than 0")
    if number > MAX_PRICE:
        raise ValidationError(field, "Price must be less than 1,000,000")
    return number.quantize(Decimal("0.01"))


def parse_date(value: Any, field: str, *, label: str, required: bool = False) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if text is None:
        if required:
            raise ValidationError(field, f"{label} is required")
        return None
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(field, f"Enter {label.lower()} in YYYY-MM-DD format.") from None


def parse_link(value: Any, field: str = "link") -> str | None:
    text = clean_text(value)
    if text is None:
        return None
    parsed = urlparse(text)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValidationError(field, "Must be a valid URL")
    return text


def parse_status(value: Any, allowed, *, field: str = "status", default: str | None = None) -> str:
    text = clean_text(value)
    if text is None:
        if default is None:
            raise ValidationError(field, "Status is required")
        return default
    normalized = text.lower().replace(" ", "_")
    if normalized not in allowed:
        raise ValidationError(field, f"Unknown status: {text}")
    return normalized


def validate_purchase_item(data: Mapping, *, require_status: bool = False) -> dict:
    return {
        "item_name": require_text(data, "item_name", "Item name", max_length=100),
        "where_to_buy": optional_text(data, "where_to_buy", "Store name", max_length=200),
        "price": parse_price(data.get("price")),
        "quantity": parse_quantity(data.get("quantity")),
        "link": parse_link(data.get("link")),
        "status": parse_status(
            data.get("status"),
            PurchaseStatus.ALL_STATUSES,
            default=None if require_status else PurchaseStatus.CONSIDERING,
        ),
        "course_tag": optional_text(data, "course_tag", "Course tag", max_length=50),
    }


def validate_stock_item(data: Mapping) -> dict:
    return {
        "item_name": require_text(data, "item_name", "Item name", max_length=100),
        "total_quantity": parse_quantity(
            data.get("total_quantity"), "total_quantity", maximum=999999
        ),
        "location": require_text(data, "location", "Location", max_length=100),
        "course_tag": optional_text(data, "course_tag", "Course tag", max_length=50),
        "purchase_price": parse_price(data.get("purchase_price"), "purchase_price"),
    }


def validate_borrow(data: Mapping) -> dict:
    return {
        "borrower_name": require_text(data, "borrower_name", "Borrower name", max_length=100),
        "borrower_contact": optional_text(
            data, "borrower_contact", "Contact", max_length=100
        ),
        "quantity": parse_quantity(data.get("quantity")),
        "expected_return_date": parse_date(
            data.get("expected_return_date"),
            "expected_return_date",
            label="Expected return date",
        ),
        "notes": optional_text(data, "notes", "Notes", max_length=500),
    }


def validate_course(data: Mapping) -> dict:
    return {
        "course_name": require_text(data, "course_name", "Course name", max_length=100),
        "description": optional_text(data, "description", "Description", max_length=500),
        "course_date": parse_date(
            data.get("course_date"), "course_date", label="Course date", required=True
        ),
        "instructor": optional_text(data, "instructor", "Instructor name", max_length=100),
        "status": parse_status(
            data.get("status"), CourseStatus.ALL_STATUSES, default=CourseStatus.PLANNED
        ),
    }


def validate_course_item(data: Mapping) -> dict:
    return {
        "item_name": require_text(data, "item_name", "Item name", max_length=100),
        "quantity_reserved": parse_quantity(
            data.get("quantity_reserved"), "quantity_reserved"
        ),
        "notes": optional_text(data, "notes", "Notes", max_length=500),
    }
