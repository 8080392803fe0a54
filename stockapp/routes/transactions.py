"""Transaction history endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from stockapp.auth import current_store, login_guard, request_payload
from stockapp.errors import NotFound
from stockapp.models import StockTransaction
from stockapp.services import stock_ledger
from stockapp.utils.csv_export import export_rows_to_csv
from stockapp.utils.csv_schema import TRANSACTION_CSV_COLUMNS

bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")

bp.before_request(login_guard)


def _filtered_transactions():
    stock_item_id = request.args.get("stock_item_id", type=int)
    return stock_ledger.list_transactions(
        current_store(),
        type=(request.args.get("type") or "").strip().lower() or None,
        stock_item_id=stock_item_id,
        search=request.args.get("q"),
    )


@bp.get("/")
def list_transactions():
    return jsonify({"transactions": [tx.to_dict() for tx in _filtered_transactions()]})


@bp.post("/<int:transaction_id>/correct")
def correct_transaction(transaction_id: int):
    transaction = current_store().get(StockTransaction, transaction_id)
    if transaction is None:
        raise NotFound("Transaction not found.")
    data = request_payload()
    correction = stock_ledger.correct_transaction(
        current_store(), transaction, data.get("performed_by"), data.get("reason")
    )
    return jsonify(correction.to_dict()), 201


@bp.get("/export.csv")
def export_transactions():
    rows = [tx.to_dict() for tx in _filtered_transactions()]
    return export_rows_to_csv(rows, TRANSACTION_CSV_COLUMNS, "stock_transactions.csv")


@bp.get("/export.json")
def export_transactions_json():
    return jsonify([tx.to_dict() for tx in _filtered_transactions()])
