from flask import Blueprint, current_app, jsonify, request

from stockapp.auth import current_store, login_guard
from stockapp.services import overview

bp = Blueprint("dashboard", __name__, url_prefix="/api")

bp.before_request(login_guard)


@bp.get("/dashboard")
def dashboard():
    summary = overview.dashboard_summary(
        current_store(),
        low_stock_threshold=int(current_app.config.get("LOW_STOCK_THRESHOLD", 5)),
    )
    return jsonify(summary)


@bp.get("/search")
def search():
    return jsonify(overview.search(current_store(), request.args.get("q")))
