"""Stock quantities and the transaction ledger."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Mapping

from flask import current_app, has_app_context
from sqlalchemy import or_

from stockapp.errors import InsufficientStock, ValidationError
from stockapp.models import StockItem, StockTransaction, TransactionType
from stockapp.services.record_store import RecordStore
from stockapp.services.validation import (
    clean_text,
    optional_text,
    parse_price,
    parse_quantity,
    require_text,
    validate_stock_item,
)
from stockapp.utils.tabular_import import ImportResult, convert_rows_to_stock_items

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "Warehouse"
MAX_STOCK_QUANTITY = 999999


def _append_transaction(
    store: RecordStore,
    stock_item: StockItem,
    *,
    type: str,
    quantity: int,
    reason: str,
    performed_by: str,
    corrects: StockTransaction | None = None,
) -> StockTransaction:
    transaction = store.insert(
        StockTransaction,
        stock_item=stock_item,
        type=type,
        quantity=quantity,
        reason=reason,
        performed_by=performed_by,
        date=datetime.utcnow(),
        corrects=corrects,
    )
    return transaction


def stage_transaction(
    store: RecordStore,
    stock_item: StockItem,
    type: str,
    quantity,
    reason: str | None,
    performed_by: str | None,
    *,
    corrects: StockTransaction | None = None,
) -> StockTransaction:
    """Move stock in or out and append the ledger entry, without committing.

    Stock-in raises both the available and the total quantity. Stock-out only
    lowers the available quantity: the total is the count ever acquired.
    """

    if type not in TransactionType.ALL_TYPES:
        raise ValidationError("type", f"Unknown transaction type: {type}")
    quantity = parse_quantity(quantity, maximum=MAX_STOCK_QUANTITY)
    performed_by = clean_text(performed_by)
    if not performed_by:
        raise ValidationError("performed_by", "Please enter who performed the transaction.")
    reason = clean_text(reason) or ""
    if len(reason) > 500:
        raise ValidationError("reason", "Notes must be less than 500 characters")

    available = stock_item.available_quantity or 0
    if type == TransactionType.OUT:
        if quantity > available:
            raise InsufficientStock(stock_item.item_name, quantity, available)
        stock_item.available_quantity = available - quantity
    else:
        stock_item.available_quantity = available + quantity
        stock_item.total_quantity = (stock_item.total_quantity or 0) + quantity

    return _append_transaction(
        store,
        stock_item,
        type=type,
        quantity=quantity,
        reason=reason,
        performed_by=performed_by,
        corrects=corrects,
    )


def apply_transaction(
    store: RecordStore,
    stock_item: StockItem,
    type: str,
    quantity,
    reason: str | None,
    performed_by: str | None,
) -> StockTransaction:
    """Record one physical stock movement.

    Every call is a new movement; replaying a call applies it twice.
    """

    with store.unit_of_work():
        transaction = stage_transaction(
            store, stock_item, type, quantity, reason, performed_by
        )
    logger.info(
        "Stock %s of %s for %s by %s",
        transaction.type,
        transaction.quantity,
        stock_item.item_name,
        transaction.performed_by,
    )
    return transaction


def correct_transaction(
    store: RecordStore,
    transaction: StockTransaction,
    performed_by: str | None,
    reason: str | None = None,
) -> StockTransaction:
    """Reverse a ledger entry by appending the opposite movement.

    Historical entries are never edited; a correction is its own entry that
    points back at the one it reverses.
    """

    already = store.query(StockTransaction).filter(
        StockTransaction.corrects_transaction_id == transaction.id
    ).first()
    if already is not None:
        raise ValidationError("transaction", "This transaction has already been corrected.")

    opposite = (
        TransactionType.OUT if transaction.type == TransactionType.IN else TransactionType.IN
    )
    reason = clean_text(reason) or f"Correction of transaction #{transaction.id}"
    stock_item = transaction.stock_item
    with store.unit_of_work():
        correction = stage_transaction(
            store,
            stock_item,
            opposite,
            transaction.quantity,
            reason,
            performed_by,
            corrects=transaction,
        )
        # Reversing a stock-in takes back what it added to the total; reversing
        # a stock-out returns units without acquiring new ones. Either way the
        # total ends where it was before the original entry.
        stock_item.total_quantity = max(
            stock_item.available_quantity,
            (stock_item.total_quantity or 0) - transaction.quantity,
        )
    logger.info(
        "Transaction #%s corrected by #%s (%s %s)",
        transaction.id,
        correction.id,
        correction.type,
        correction.quantity,
    )
    return correction


def default_location() -> str:
    if has_app_context():
        return current_app.config.get("DEFAULT_STOCK_LOCATION") or DEFAULT_LOCATION
    return DEFAULT_LOCATION


def create_stock_item(
    store: RecordStore,
    *,
    item_name: str,
    quantity: int,
    purchase_price: Decimal,
    location: str | None = None,
    course_tag: str | None = None,
) -> StockItem:
    """Stage a new stock row whose total and available quantities start equal."""

    return store.insert(
        StockItem,
        item_name=item_name,
        total_quantity=quantity,
        available_quantity=quantity,
        location=location or default_location(),
        course_tag=course_tag,
        purchase_price=purchase_price,
    )


def add_stock_item(store: RecordStore, data: Mapping) -> StockItem:
    cleaned = validate_stock_item(data)
    with store.unit_of_work():
        item = create_stock_item(
            store,
            item_name=cleaned["item_name"],
            quantity=cleaned["total_quantity"],
            purchase_price=cleaned["purchase_price"],
            location=cleaned["location"],
            course_tag=cleaned["course_tag"],
        )
    return item


def update_stock_item(store: RecordStore, item: StockItem, data: Mapping) -> StockItem:
    """Edit descriptive fields. Quantities only move through the ledger."""

    patch = {}
    if "item_name" in data:
        patch["item_name"] = require_text(data, "item_name", "Item name", max_length=100)
    if "location" in data:
        patch["location"] = require_text(data, "location", "Location", max_length=100)
    if "course_tag" in data:
        patch["course_tag"] = optional_text(data, "course_tag", "Course tag", max_length=50)
    if "purchase_price" in data:
        patch["purchase_price"] = parse_price(data.get("purchase_price"), "purchase_price")
    with store.unit_of_work():
        store.update(item, **patch)
    return item


def delete_stock_item(store: RecordStore, item: StockItem) -> None:
    with store.unit_of_work():
        store.delete(item)


def mark_presence(store: RecordStore, item, is_present: bool):
    with store.unit_of_work():
        store.update(item, is_present=bool(is_present), last_checked=datetime.utcnow())
    return item


def list_stock_items(store: RecordStore, search: str | None = None) -> list[StockItem]:
    criteria = []
    text = clean_text(search)
    if text:
        pattern = f"%{text.lower()}%"
        criteria.append(
            or_(
                StockItem.item_name.ilike(pattern),
                StockItem.location.ilike(pattern),
                StockItem.course_tag.ilike(pattern),
            )
        )
    return store.select(StockItem, *criteria, order_by=StockItem.created_at.desc())


def list_transactions(
    store: RecordStore,
    *,
    type: str | None = None,
    stock_item_id: int | None = None,
    search: str | None = None,
) -> list[StockTransaction]:
    query = store.query(StockTransaction).outerjoin(StockTransaction.stock_item)
    if type:
        if type not in TransactionType.ALL_TYPES:
            raise ValidationError("type", f"Unknown transaction type: {type}")
        query = query.filter(StockTransaction.type == type)
    if stock_item_id is not None:
        query = query.filter(StockTransaction.stock_item_id == stock_item_id)
    text = clean_text(search)
    if text:
        pattern = f"%{text.lower()}%"
        query = query.filter(
            or_(
                StockTransaction.reason.ilike(pattern),
                StockTransaction.performed_by.ilike(pattern),
                StockItem.item_name.ilike(pattern),
            )
        )
    return query.order_by(StockTransaction.date.desc(), StockTransaction.id.desc()).all()


def import_stock_items(store: RecordStore, csv_text: str) -> ImportResult:
    """Create stock rows from CSV text, skipping incomplete or inconsistent rows."""

    candidates, result = convert_rows_to_stock_items(csv_text)
    with store.unit_of_work():
        for candidate in candidates:
            try:
                total = parse_quantity(
                    candidate.get("total_quantity"), "total_quantity", maximum=MAX_STOCK_QUANTITY
                )
                available = parse_quantity(
                    candidate.get("available_quantity"),
                    "available_quantity",
                    minimum=0,
                    maximum=MAX_STOCK_QUANTITY,
                )
                if available > total:
                    raise ValidationError(
                        "available_quantity", "Available quantity cannot exceed the total."
                    )
                price_text = clean_text(candidate.get("purchase_price"))
                price = parse_price(price_text, "purchase_price") if price_text else Decimal("0")
                item_name = require_text(candidate, "item_name", "Item name", max_length=100)
            except ValidationError as exc:
                result.skip(candidate, str(exc))
                continue
            store.insert(
                StockItem,
                item_name=item_name,
                total_quantity=total,
                available_quantity=available,
                location=clean_text(candidate.get("location")) or default_location(),
                course_tag=clean_text(candidate.get("course_tag")),
                purchase_price=price,
            )
            result.imported += 1
    logger.info("Imported %s stock items (%s skipped)", result.imported, result.skipped)
    return result
