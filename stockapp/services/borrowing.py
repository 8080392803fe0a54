"""Borrowing stock out to people and taking it back."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Mapping

from sqlalchemy import or_

from stockapp.errors import AlreadyReturned, InsufficientStock, ValidationError
from stockapp.models import BorrowRecord, BorrowStatus, StockItem
from stockapp.services.record_store import RecordStore
from stockapp.services.validation import clean_text, validate_borrow

logger = logging.getLogger(__name__)


def borrow(store: RecordStore, stock_item: StockItem, data: Mapping) -> BorrowRecord:
    """Lend ``quantity`` units of a stock item.

    The units leave the available quantity for as long as the record stays
    borrowed; the total quantity is untouched.
    """

    cleaned = validate_borrow(data)
    quantity = cleaned["quantity"]
    available = stock_item.available_quantity or 0
    if quantity > available:
        raise InsufficientStock(stock_item.item_name, quantity, available)

    with store.unit_of_work():
        store.update(stock_item, available_quantity=available - quantity)
        record = store.insert(
            BorrowRecord,
            stock_item=stock_item,
            item_name=stock_item.item_name,
            borrow_date=datetime.utcnow(),
            status=BorrowStatus.BORROWED,
            **cleaned,
        )
    logger.info(
        "%s borrowed %s x %s", record.borrower_name, record.quantity, record.item_name
    )
    return record


def return_item(store: RecordStore, record: BorrowRecord) -> BorrowRecord:
    """Bring a borrowed record back into stock. A record returns only once."""

    if record.status != BorrowStatus.BORROWED:
        raise AlreadyReturned(record.id)

    stock_item = record.stock_item
    if stock_item is None:
        raise ValidationError("stock_item_id", "The borrowed stock item no longer exists.")

    restored = (stock_item.available_quantity or 0) + record.quantity
    total = stock_item.total_quantity or 0
    if restored > total:
        # Only possible when the stock row was edited behind the tracker's back.
        logger.warning(
            "Return of record %s would lift %s above its total (%s > %s); capping",
            record.id,
            stock_item.item_name,
            restored,
            total,
        )
        restored = total

    with store.unit_of_work():
        store.update(stock_item, available_quantity=restored)
        store.update(
            record,
            status=BorrowStatus.RETURNED,
            actual_return_date=datetime.utcnow(),
        )
    logger.info(
        "%s returned %s x %s", record.borrower_name, record.quantity, record.item_name
    )
    return record


def list_records(
    store: RecordStore,
    *,
    status: str | None = None,
    search: str | None = None,
) -> list[BorrowRecord]:
    query = store.query(BorrowRecord)
    if status:
        if status not in BorrowStatus.ALL_STATUSES:
            raise ValidationError("status", f"Unknown status: {status}")
        query = query.filter(BorrowRecord.status == status)
    text = clean_text(search)
    if text:
        pattern = f"%{text.lower()}%"
        query = query.filter(
            or_(
                BorrowRecord.item_name.ilike(pattern),
                BorrowRecord.borrower_name.ilike(pattern),
                BorrowRecord.borrower_contact.ilike(pattern),
            )
        )
    return query.order_by(BorrowRecord.borrow_date.desc(), BorrowRecord.id.desc()).all()


def overdue_records(store: RecordStore, today: date | None = None) -> list[BorrowRecord]:
    today = today or date.today()
    return store.select(
        BorrowRecord,
        BorrowRecord.expected_return_date.isnot(None),
        BorrowRecord.expected_return_date < today,
        status=BorrowStatus.BORROWED,
        order_by=BorrowRecord.expected_return_date.asc(),
    )
