"""Dashboard summary and cross-table search."""

from __future__ import annotations

from sqlalchemy import or_

from stockapp.models import (
    BorrowRecord,
    BorrowStatus,
    PurchaseItem,
    PurchaseStatus,
    StockItem,
)
from stockapp.services.record_store import RecordStore
from stockapp.services.validation import clean_text


def dashboard_summary(store: RecordStore, *, low_stock_threshold: int = 5, preview_limit: int = 5):
    purchases = store.select(PurchaseItem)
    stock_items = store.select(StockItem)

    low_items = sorted(
        (item for item in stock_items if (item.available_quantity or 0) < low_stock_threshold),
        key=lambda item: (item.available_quantity or 0, item.item_name),
    )
    recent = sorted(purchases, key=lambda item: item.updated_at, reverse=True)[:preview_limit]
    active_borrows = store.query(BorrowRecord).filter(
        BorrowRecord.status == BorrowStatus.BORROWED
    ).count()

    return {
        "total_purchases": len(purchases),
        "pending_deliveries": sum(
            1 for item in purchases if item.status == PurchaseStatus.WAITING_DELIVERY
        ),
        "arrived_items": sum(
            1 for item in purchases if item.status == PurchaseStatus.ARRIVED
        ),
        "total_stock_items": len(stock_items),
        "low_stock_items": len(low_items),
        "active_borrows": active_borrows,
        "recent_purchases": [item.to_dict() for item in recent],
        "low_stock_preview": [
            item.to_dict(low_stock_threshold) for item in low_items[:preview_limit]
        ],
    }


def search(store: RecordStore, term: str | None, *, limit: int = 50):
    text = clean_text(term)
    if not text or len(text) < 2:
        return {"purchases": [], "stock": []}

    pattern = f"%{text.lower()}%"
    purchases = (
        store.query(PurchaseItem)
        .filter(
            or_(
                PurchaseItem.item_name.ilike(pattern),
                PurchaseItem.item_code.ilike(pattern),
                PurchaseItem.course_tag.ilike(pattern),
                PurchaseItem.where_to_buy.ilike(pattern),
            )
        )
        .order_by(PurchaseItem.item_name)
        .limit(limit)
        .all()
    )
    stock = (
        store.query(StockItem)
        .filter(
            or_(
                StockItem.item_name.ilike(pattern),
                StockItem.course_tag.ilike(pattern),
                StockItem.location.ilike(pattern),
            )
        )
        .order_by(StockItem.item_name)
        .limit(limit)
        .all()
    )
    return {
        "purchases": [item.to_dict() for item in purchases],
        "stock": [item.to_dict() for item in stock],
    }
