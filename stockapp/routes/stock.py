"""Stock item and stock movement endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from stockapp.auth import current_store, login_guard, request_payload
from stockapp.errors import NotFound
from stockapp.models import StockItem
from stockapp.services import stock_ledger
from stockapp.utils.csv_export import export_rows_to_csv
from stockapp.utils.csv_schema import STOCK_CSV_COLUMNS
from stockapp.utils.tabular_import import parse_tabular_upload

bp = Blueprint("stock", __name__, url_prefix="/api/stock")

bp.before_request(login_guard)


def _threshold() -> int:
    return int(current_app.config.get("LOW_STOCK_THRESHOLD", 5))


def _get_item(item_id: int) -> StockItem:
    item = current_store().get(StockItem, item_id)
    if item is None:
        raise NotFound("Stock item not found.")
    return item


@bp.get("/")
def list_stock():
    items = stock_ledger.list_stock_items(current_store(), request.args.get("q"))
    return jsonify({"items": [item.to_dict(_threshold()) for item in items]})


@bp.post("/")
def create_stock():
    item = stock_ledger.add_stock_item(current_store(), request_payload())
    return jsonify(item.to_dict(_threshold())), 201


@bp.get("/<int:item_id>")
def get_stock(item_id: int):
    item = _get_item(item_id)
    payload = item.to_dict(_threshold())
    payload["borrowed_quantity"] = item.borrowed_quantity
    payload["transactions"] = [tx.to_dict() for tx in reversed(item.transactions)]
    return jsonify(payload)


@bp.patch("/<int:item_id>")
def update_stock(item_id: int):
    item = stock_ledger.update_stock_item(current_store(), _get_item(item_id), request_payload())
    return jsonify(item.to_dict(_threshold()))


@bp.delete("/<int:item_id>")
def delete_stock(item_id: int):
    stock_ledger.delete_stock_item(current_store(), _get_item(item_id))
    return "", 204


@bp.post("/<int:item_id>/transactions")
def create_transaction(item_id: int):
    data = request_payload()
    item = _get_item(item_id)
    transaction = stock_ledger.apply_transaction(
        current_store(),
        item,
        (data.get("type") or "").strip().lower(),
        data.get("quantity"),
        data.get("reason"),
        data.get("performed_by"),
    )
    return (
        jsonify({"transaction": transaction.to_dict(), "item": item.to_dict(_threshold())}),
        201,
    )


@bp.post("/<int:item_id>/presence")
def mark_presence(item_id: int):
    data = request_payload()
    is_present = str(data.get("is_present", True)).strip().lower() in {"1", "true", "yes", "on"}
    item = stock_ledger.mark_presence(current_store(), _get_item(item_id), is_present)
    return jsonify(item.to_dict(_threshold()))


@bp.post("/import")
def import_stock():
    csv_text = parse_tabular_upload(request.files.get("file"))
    result = stock_ledger.import_stock_items(current_store(), csv_text)
    return jsonify(result.to_dict())


@bp.get("/export.csv")
def export_stock():
    items = stock_ledger.list_stock_items(current_store())
    return export_rows_to_csv(items, STOCK_CSV_COLUMNS, "stock_items.csv")


@bp.get("/export.json")
def export_stock_json():
    items = stock_ledger.list_stock_items(current_store())
    return jsonify([item.to_dict(_threshold()) for item in items])
