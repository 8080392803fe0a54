from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from stockapp.errors import StockAppError
from stockapp.extensions import db
from stockapp.utils.tabular_import import TabularImportError

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(StockAppError)
def handle_stock_error(error: StockAppError):
    db.session.rollback()
    current_app.logger.info(
        "%s on %s %s: %s", type(error).__name__, request.method, request.path, error
    )
    return jsonify(error.to_dict()), error.status_code


@bp.app_errorhandler(TabularImportError)
def handle_import_error(error: TabularImportError):
    return jsonify({"error": str(error), "field": "file"}), 400


@bp.app_errorhandler(PermissionError)
def handle_permission_error(error: PermissionError):
    return jsonify({"error": str(error) or "Forbidden"}), 403


@bp.app_errorhandler(HTTPException)
def handle_http_error(error: HTTPException):
    return jsonify({"error": error.description or error.name}), error.code


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    db.session.rollback()
    current_app.logger.exception("Unhandled exception", exc_info=error)
    return jsonify({"error": "Internal Server Error"}), 500
