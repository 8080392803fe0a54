"""Purchase request endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from stockapp.auth import current_store, login_guard, request_payload
from stockapp.errors import NotFound
from stockapp.models import PurchaseItem, PurchaseStatus
from stockapp.services import purchasing
from stockapp.utils.csv_export import export_rows_to_csv
from stockapp.utils.csv_schema import PURCHASE_CSV_COLUMNS
from stockapp.utils.tabular_import import parse_tabular_upload

bp = Blueprint("purchasing", __name__, url_prefix="/api/purchases")

bp.before_request(login_guard)


def _truthy(value) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _get_item(item_id: int) -> PurchaseItem:
    item = current_store().get(PurchaseItem, item_id)
    if item is None:
        raise NotFound("Purchase item not found.")
    return item


@bp.get("/")
def list_purchases():
    items = purchasing.list_purchase_items(
        current_store(),
        status=(request.args.get("status") or "").strip().lower() or None,
        search=request.args.get("q"),
    )
    return jsonify(
        {
            "items": [item.to_dict() for item in items],
            "status_choices": PurchaseStatus.LABELS,
        }
    )


@bp.post("/")
def create_purchase():
    data = request_payload()
    item = purchasing.create_purchase_item(
        current_store(),
        data,
        confirm_duplicate=_truthy(data.get("confirm_duplicate", False)),
        location=data.get("location"),
    )
    return jsonify(item.to_dict()), 201


@bp.get("/<int:item_id>")
def get_purchase(item_id: int):
    return jsonify(_get_item(item_id).to_dict())


@bp.patch("/<int:item_id>")
def update_purchase(item_id: int):
    item = purchasing.update_purchase_item(current_store(), _get_item(item_id), request_payload())
    return jsonify(item.to_dict())


@bp.delete("/<int:item_id>")
def delete_purchase(item_id: int):
    purchasing.delete_purchase_item(current_store(), _get_item(item_id))
    return "", 204


@bp.post("/<int:item_id>/status")
def update_status(item_id: int):
    data = request_payload()
    item = _get_item(item_id)
    stock_item = purchasing.set_status(
        current_store(), item, data.get("status"), location=data.get("location")
    )
    return jsonify(
        {
            "item": item.to_dict(),
            "stock_item": stock_item.to_dict() if stock_item is not None else None,
        }
    )


@bp.post("/<int:item_id>/repurchase")
def repurchase(item_id: int):
    data = request_payload()
    new_item = purchasing.repurchase(current_store(), _get_item(item_id), data.get("quantity"))
    return jsonify(new_item.to_dict()), 201


@bp.post("/<int:item_id>/presence")
def mark_presence(item_id: int):
    data = request_payload()
    item = purchasing.mark_presence(
        current_store(), _get_item(item_id), _truthy(data.get("is_present", True))
    )
    return jsonify(item.to_dict())


@bp.post("/import")
def import_purchases():
    csv_text = parse_tabular_upload(request.files.get("file"))
    result = purchasing.import_purchase_items(current_store(), csv_text)
    return jsonify(result.to_dict())


@bp.get("/export.csv")
def export_purchases():
    items = purchasing.list_purchase_items(current_store())
    return export_rows_to_csv(items, PURCHASE_CSV_COLUMNS, "purchase_items.csv")


@bp.get("/export.json")
def export_purchases_json():
    items = purchasing.list_purchase_items(current_store())
    return jsonify([item.to_dict() for item in items])
