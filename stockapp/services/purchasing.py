"""Purchase requests and their hand-off into stock."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Mapping

from sqlalchemy import func, or_

from stockapp.errors import DuplicateEntity, ValidationError
from stockapp.models import PurchaseItem, PurchaseStatus, StockItem
from stockapp.services import stock_ledger
from stockapp.services.record_store import RecordStore
from stockapp.services.validation import (
    clean_text,
    optional_text,
    parse_link,
    parse_price,
    parse_quantity,
    parse_status,
    require_text,
    validate_purchase_item,
)
from stockapp.utils.tabular_import import ImportResult, convert_rows_to_purchase_items

logger = logging.getLogger(__name__)


def generate_item_code() -> str:
    return f"ITEM-{secrets.token_hex(4).upper()}"


def find_duplicates(store: RecordStore, item_name: str, *, exclude_id: int | None = None):
    query = store.query(PurchaseItem).filter(
        func.lower(PurchaseItem.item_name) == item_name.strip().lower()
    )
    if exclude_id is not None:
        query = query.filter(PurchaseItem.id != exclude_id)
    return query.order_by(PurchaseItem.created_at).all()


def _stage_purchase_item(store: RecordStore, cleaned: dict, item_code: str | None = None):
    return store.insert(
        PurchaseItem,
        item_code=item_code or generate_item_code(),
        **cleaned,
    )


def create_purchase_item(
    store: RecordStore,
    data: Mapping,
    *,
    confirm_duplicate: bool = False,
    location: str | None = None,
) -> PurchaseItem:
    """Validate and store a new purchase request.

    A request sharing its name (case-insensitive) with an existing one raises
    :class:`DuplicateEntity` until the caller confirms. A request created
    directly as arrived or stored is moved to stock right away.
    """

    cleaned = validate_purchase_item(data)
    if not confirm_duplicate:
        existing = find_duplicates(store, cleaned["item_name"])
        if existing:
            raise DuplicateEntity(cleaned["item_name"], existing)

    with store.unit_of_work():
        item = _stage_purchase_item(store, cleaned)
        if item.status in PurchaseStatus.RECEIVED_STATES:
            _stage_move_to_stock(store, item, location=location)
    return item


def update_purchase_item(store: RecordStore, item: PurchaseItem, data: Mapping) -> PurchaseItem:
    """Edit the descriptive fields of a request. Status goes through set_status."""

    patch = {}
    if "item_name" in data:
        patch["item_name"] = require_text(data, "item_name", "Item name", max_length=100)
    if "where_to_buy" in data:
        patch["where_to_buy"] = optional_text(
            data, "where_to_buy", "Store name", max_length=200
        )
    if "price" in data:
        patch["price"] = parse_price(data.get("price"))
    if "quantity" in data:
        if item.stock_item_id is not None:
            raise ValidationError(
                "quantity", "Quantity cannot change after the item moved to stock."
            )
        patch["quantity"] = parse_quantity(data.get("quantity"))
    if "link" in data:
        patch["link"] = parse_link(data.get("link"))
    if "course_tag" in data:
        patch["course_tag"] = optional_text(data, "course_tag", "Course tag", max_length=50)

    with store.unit_of_work():
        store.update(item, **patch)
    return item


def delete_purchase_item(store: RecordStore, item: PurchaseItem) -> None:
    with store.unit_of_work():
        store.delete(item)


def _stage_move_to_stock(
    store: RecordStore, item: PurchaseItem, *, location: str | None = None
) -> StockItem | None:
    if item.stock_item_id is not None or item.stock_item is not None:
        return None
    stock_item = stock_ledger.create_stock_item(
        store,
        item_name=item.item_name,
        quantity=item.quantity,
        purchase_price=item.price,
        location=clean_text(location),
        course_tag=item.course_tag,
    )
    item.stock_item = stock_item
    return stock_item


def set_status(
    store: RecordStore,
    item: PurchaseItem,
    new_status: str,
    *,
    location: str | None = None,
) -> StockItem | None:
    """Move a purchase request to ``new_status``.

    Entering arrived or stored from any other status creates the stock row for
    the purchase, in the same database transaction as the status change. The
    stock row is created at most once per purchase: re-saving a received status
    or moving from arrived to stored creates nothing. Returns the new stock row,
    if any.
    """

    new_status = parse_status(new_status, PurchaseStatus.ALL_STATUSES)
    previous = item.status
    if not PurchaseStatus.is_expected(previous, new_status):
        logger.warning(
            "Purchase %s moved %s -> %s outside the usual workflow",
            item.id,
            previous,
            new_status,
        )

    stock_item = None
    with store.unit_of_work():
        store.update(item, status=new_status, updated_at=datetime.utcnow())
        entering_received = (
            new_status in PurchaseStatus.RECEIVED_STATES
            and previous not in PurchaseStatus.RECEIVED_STATES
        )
        if entering_received:
            stock_item = _stage_move_to_stock(store, item, location=location)

    if stock_item is not None:
        logger.info(
            "Purchase %s (%s) moved to stock as item %s with quantity %s",
            item.id,
            item.item_name,
            stock_item.id,
            stock_item.total_quantity,
        )
    return stock_item


def repurchase(store: RecordStore, item: PurchaseItem, quantity=None) -> PurchaseItem:
    """Queue another purchase of an existing request under the same item code."""

    if quantity is None or clean_text(quantity) is None:
        quantity = item.quantity
    cleaned = {
        "item_name": item.item_name,
        "where_to_buy": item.where_to_buy,
        "price": item.price,
        "quantity": parse_quantity(quantity),
        "link": item.link,
        "status": PurchaseStatus.CONSIDERING,
        "course_tag": item.course_tag,
    }
    with store.unit_of_work():
        new_item = _stage_purchase_item(store, cleaned, item_code=item.item_code)
    return new_item


def mark_presence(store: RecordStore, item: PurchaseItem, is_present: bool) -> PurchaseItem:
    return stock_ledger.mark_presence(store, item, is_present)


def list_purchase_items(
    store: RecordStore,
    *,
    status: str | None = None,
    search: str | None = None,
) -> list[PurchaseItem]:
    query = store.query(PurchaseItem)
    if status:
        if status == "open":
            query = query.filter(~PurchaseItem.status.in_(PurchaseStatus.RECEIVED_STATES))
        else:
            status = parse_status(status, PurchaseStatus.ALL_STATUSES)
            query = query.filter(PurchaseItem.status == status)
    text = clean_text(search)
    if text:
        pattern = f"%{text.lower()}%"
        query = query.filter(
            or_(
                PurchaseItem.item_name.ilike(pattern),
                PurchaseItem.where_to_buy.ilike(pattern),
                PurchaseItem.course_tag.ilike(pattern),
                PurchaseItem.item_code.ilike(pattern),
            )
        )
    return query.order_by(PurchaseItem.created_at.desc(), PurchaseItem.id.desc()).all()


def import_purchase_items(store: RecordStore, csv_text: str) -> ImportResult:
    """Create purchase requests from CSV text, skipping incomplete rows."""

    candidates, result = convert_rows_to_purchase_items(csv_text)
    with store.unit_of_work():
        for candidate in candidates:
            try:
                cleaned = validate_purchase_item(candidate)
            except ValidationError as exc:
                result.skip(candidate, str(exc))
                continue
            item = _stage_purchase_item(store, cleaned)
            if item.status in PurchaseStatus.RECEIVED_STATES:
                _stage_move_to_stock(store, item)
            result.imported += 1
    logger.info(
        "Imported %s purchase items (%s skipped)", result.imported, result.skipped
    )
    return result
