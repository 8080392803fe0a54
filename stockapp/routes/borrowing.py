"""Borrow and return endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from stockapp.auth import current_store, login_guard, request_payload
from stockapp.errors import NotFound
from stockapp.models import BorrowRecord, StockItem
from stockapp.services import borrowing
from stockapp.utils.csv_export import export_rows_to_csv
from stockapp.utils.csv_schema import BORROW_CSV_COLUMNS

bp = Blueprint("borrowing", __name__, url_prefix="/api/borrows")

bp.before_request(login_guard)


@bp.get("/")
def list_borrows():
    records = borrowing.list_records(
        current_store(),
        status=(request.args.get("status") or "").strip().lower() or None,
        search=request.args.get("q"),
    )
    return jsonify({"records": [record.to_dict() for record in records]})


@bp.get("/overdue")
def list_overdue():
    return jsonify(
        {"records": [record.to_dict() for record in borrowing.overdue_records(current_store())]}
    )


@bp.post("/")
def create_borrow():
    data = request_payload()
    stock_item = current_store().get(StockItem, data.get("stock_item_id"))
    if stock_item is None:
        raise NotFound("Please select a stock item.")
    record = borrowing.borrow(current_store(), stock_item, data)
    return jsonify(record.to_dict()), 201


@bp.post("/<int:record_id>/return")
def return_borrow(record_id: int):
    record = current_store().get(BorrowRecord, record_id)
    if record is None:
        raise NotFound("Borrow record not found.")
    record = borrowing.return_item(current_store(), record)
    return jsonify(record.to_dict())


@bp.get("/export.csv")
def export_borrows():
    records = borrowing.list_records(current_store())
    return export_rows_to_csv(records, BORROW_CSV_COLUMNS, "borrow_records.csv")


@bp.get("/export.json")
def export_borrows_json():
    return jsonify([record.to_dict() for record in borrowing.list_records(current_store())])
