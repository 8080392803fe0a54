"""CSV schema definitions and header resolution utilities."""

from __future__ import annotations

import re
from collections.abc import Iterable

PURCHASE_CSV_COLUMNS: list[tuple[str, str]] = [
    ("item_code", "item_code"),
    ("item_name", "item_name"),
    ("where_to_buy", "where_to_buy"),
    ("price", "price"),
    ("quantity", "quantity"),
    ("link", "link"),
    ("status", "status"),
    ("course_tag", "course_tag"),
    ("created_at", "created_at"),
]

STOCK_CSV_COLUMNS: list[tuple[str, str]] = [
    ("item_name", "item_name"),
    ("total_quantity", "total_quantity"),
    ("available_quantity", "available_quantity"),
    ("location", "location"),
    ("course_tag", "course_tag"),
    ("purchase_price", "purchase_price"),
    ("created_at", "created_at"),
]

TRANSACTION_CSV_COLUMNS: list[tuple[str, str]] = [
    ("date", "date"),
    ("item_name", "item_name"),
    ("type", "type"),
    ("quantity", "quantity"),
    ("reason", "reason"),
    ("performed_by", "performed_by"),
]

BORROW_CSV_COLUMNS: list[tuple[str, str]] = [
    ("item_name", "item_name"),
    ("borrower_name", "borrower_name"),
    ("borrower_contact", "borrower_contact"),
    ("quantity", "quantity"),
    ("borrow_date", "borrow_date"),
    ("expected_return_date", "expected_return_date"),
    ("actual_return_date", "actual_return_date"),
    ("status", "status"),
    ("notes", "notes"),
]

PURCHASE_HEADER_ALIASES: dict[str, Iterable[str]] = {
    "item_name": ["item_name", "name"],
    "where_to_buy": ["where_to_buy", "supplier"],
    "price": ["price"],
    "quantity": ["quantity", "qty"],
    "link": ["link", "url"],
    "status": ["status"],
    "course_tag": ["course_tag", "course"],
}

STOCK_HEADER_ALIASES: dict[str, Iterable[str]] = {
    "item_name": ["item_name", "name"],
    "total_quantity": ["total_quantity", "total"],
    "available_quantity": ["available_quantity", "available"],
    "location": ["location"],
    "course_tag": ["course_tag", "course"],
    "purchase_price": ["purchase_price", "price"],
}

PURCHASE_REQUIRED_FIELDS = ("item_name", "where_to_buy", "price", "quantity")
STOCK_REQUIRED_FIELDS = ("item_name", "total_quantity", "available_quantity")


def normalize_header(value: str) -> str:
    """Fold ``Item Name``, ``item_name`` and ``itemname`` onto one key."""

    return re.sub(r"[\s_]+", "", (value or "").strip().lower())


def resolve_import_mappings(
    headers: Iterable[str],
    aliases: dict[str, Iterable[str]],
) -> dict[str, int]:
    """Map each known field to the index of the first header that names it."""

    normalized_headers: dict[str, int] = {}
    for index, header in enumerate(headers):
        normalized_headers.setdefault(normalize_header(header), index)

    resolved: dict[str, int] = {}
    for field_name, candidates in aliases.items():
        for candidate in candidates:
            header_key = normalize_header(str(candidate))
            if header_key in normalized_headers:
                resolved[field_name] = normalized_headers[header_key]
                break
    return resolved