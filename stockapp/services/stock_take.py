"""Stock-take sessions: count what is on the shelves and reconcile the books.

A session snapshots every stock row of the user when it starts. Counts are
recorded against the snapshot and persisted as they arrive, so a stock-take
survives page reloads and can be resumed. Submitting applies every nonzero
difference to the live stock rows, appends one ledger entry per changed item,
and returns the report lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from stockapp.errors import NotFound
from stockapp.models import (
    StockItem,
    StockTakeLine,
    StockTakeSession,
    StockTransaction,
    TransactionType,
)
from stockapp.services.record_store import RecordStore
from stockapp.services.validation import parse_quantity

logger = logging.getLogger(__name__)

STOCK_TAKE_REASON = "Stock Take Update"
STOCK_TAKE_ACTOR = "System - Stock Take"


@dataclass(frozen=True)
class ReportLine:
    item_name: str
    previous_qty: int
    counted_qty: int
    difference: int

    def to_dict(self) -> dict[str, object]:
        return {
            "item_name": self.item_name,
            "previous_qty": self.previous_qty,
            "counted_qty": self.counted_qty,
            "difference": self.difference,
        }


@dataclass(frozen=True)
class StockTakeResult:
    lines: list[ReportLine]
    submitted_at: datetime | None

    @property
    def has_changes(self) -> bool:
        return bool(self.lines)

    def to_dict(self) -> dict[str, object]:
        return {
            "changed": len(self.lines),
            "message": (
                f"{len(self.lines)} items updated."
                if self.lines
                else "No quantity changes detected in stock take."
            ),
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "report": [line.to_dict() for line in self.lines],
        }


def active_session(store: RecordStore) -> StockTakeSession | None:
    return (
        store.query(StockTakeSession)
        .filter(StockTakeSession.submitted_at.is_(None))
        .order_by(StockTakeSession.started_at.desc(), StockTakeSession.id.desc())
        .first()
    )


def start(store: RecordStore) -> StockTakeSession:
    """Open a fresh session, discarding any unfinished one."""

    with store.unit_of_work():
        for stale in store.select(StockTakeSession, StockTakeSession.submitted_at.is_(None)):
            store.delete(stale)
        session = store.insert(StockTakeSession, started_at=datetime.utcnow())
        for item in store.select(StockItem, order_by=StockItem.item_name):
            session.lines.append(
                StockTakeLine(
                    stock_item_id=item.id,
                    item_name=item.item_name,
                    location=item.location,
                    snapshot_available=item.available_quantity or 0,
                    snapshot_total=item.total_quantity or 0,
                    counted_quantity=None,
                    is_checked=False,
                    quantity_difference=None,
                )
            )
    logger.info("Stock take %s started with %s items", session.id, len(session.lines))
    return session


def _find_line(session: StockTakeSession, stock_item_id) -> StockTakeLine:
    try:
        stock_item_id = int(stock_item_id)
    except (TypeError, ValueError):
        raise NotFound(f"Stock item {stock_item_id} is not part of this stock take.") from None
    for line in session.lines:
        if line.stock_item_id == stock_item_id:
            return line
    raise NotFound(f"Stock item {stock_item_id} is not part of this stock take.")


def record_count(
    store: RecordStore,
    session: StockTakeSession,
    stock_item_id,
    counted_quantity,
) -> StockTakeLine:
    """Store a physical count; the difference is against the snapshot."""

    line = _find_line(session, stock_item_id)
    counted = parse_quantity(
        counted_quantity, "counted_quantity", minimum=0, maximum=999999
    )
    with store.unit_of_work():
        line.counted_quantity = counted
        line.is_checked = True
        line.quantity_difference = counted - line.snapshot_available
    return line


def changed_lines(session: StockTakeSession) -> list[StockTakeLine]:
    return [
        line
        for line in session.lines
        if line.is_checked
        and line.counted_quantity is not None
        and line.quantity_difference
    ]


def submit(store: RecordStore, session: StockTakeSession) -> StockTakeResult:
    """Apply every checked, nonzero difference and close the session.

    Unchecked lines and lines that match the books are left alone and stay
    out of the report. With nothing to change, no rows are written and the
    session stays open.
    """

    pending = changed_lines(session)
    if not pending:
        logger.info("Stock take %s submitted with no changes", session.id)
        return StockTakeResult(lines=[], submitted_at=None)

    live_items = {
        item.id: item
        for item in store.select(
            StockItem,
            StockItem.id.in_([line.stock_item_id for line in pending]),
        )
    }

    report: list[ReportLine] = []
    submitted_at = datetime.utcnow()
    with store.unit_of_work():
        for line in pending:
            item = live_items.get(line.stock_item_id)
            if item is None:
                # Unchecked so the rebuilt report lists only applied changes.
                line.is_checked = False
                logger.warning(
                    "Stock take %s skipped %s: stock item %s was deleted",
                    session.id,
                    line.item_name,
                    line.stock_item_id,
                )
                continue

            difference = line.quantity_difference
            item.available_quantity = line.counted_quantity
            item.total_quantity = max(
                line.counted_quantity, (item.total_quantity or 0) + difference
            )
            store.insert(
                StockTransaction,
                stock_item=item,
                type=TransactionType.IN if difference > 0 else TransactionType.OUT,
                quantity=abs(difference),
                reason=STOCK_TAKE_REASON,
                performed_by=STOCK_TAKE_ACTOR,
                date=submitted_at,
            )
            report.append(
                ReportLine(
                    item_name=line.item_name,
                    previous_qty=line.snapshot_available,
                    counted_qty=line.counted_quantity,
                    difference=difference,
                )
            )
        if report:
            session.submitted_at = submitted_at

    if not report:
        logger.info("Stock take %s submitted but every changed item was deleted", session.id)
        return StockTakeResult(lines=[], submitted_at=None)

    logger.info("Stock take %s submitted: %s items updated", session.id, len(report))
    return StockTakeResult(lines=report, submitted_at=submitted_at)


def discard(store: RecordStore, session: StockTakeSession) -> None:
    """Throw the session away without touching stock."""

    session_id = session.id
    with store.unit_of_work():
        store.delete(session)
    logger.info("Stock take %s discarded", session_id)


def last_submitted(store: RecordStore) -> StockTakeSession | None:
    return (
        store.query(StockTakeSession)
        .filter(StockTakeSession.submitted_at.isnot(None))
        .order_by(StockTakeSession.submitted_at.desc(), StockTakeSession.id.desc())
        .first()
    )


def report_lines(session: StockTakeSession) -> list[ReportLine]:
    """Rebuild the report of a submitted session from its stored lines."""

    return [
        ReportLine(
            item_name=line.item_name,
            previous_qty=line.snapshot_available,
            counted_qty=line.counted_quantity,
            difference=line.quantity_difference,
        )
        for line in changed_lines(session)
    ]
