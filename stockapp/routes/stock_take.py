"""Stock-take session endpoints."""

from __future__ import annotations

from flask import Blueprint, Response, jsonify, request

from stockapp.auth import current_store, login_guard, request_payload
from stockapp.errors import NotFound
from stockapp.services import stock_take
from stockapp.services.stock_take_report import (
    render_report_csv,
    render_report_xlsx,
    report_filename,
)

bp = Blueprint("stock_take", __name__, url_prefix="/api/stock-take")

bp.before_request(login_guard)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _require_active():
    session = stock_take.active_session(current_store())
    if session is None:
        raise NotFound("No stock take in progress.")
    return session


@bp.get("/")
def get_active():
    session = stock_take.active_session(current_store())
    return jsonify({"session": session.to_dict() if session is not None else None})


@bp.post("/start")
def start():
    session = stock_take.start(current_store())
    return jsonify({"session": session.to_dict()}), 201


@bp.post("/count")
def record_count():
    data = request_payload()
    line = stock_take.record_count(
        current_store(),
        _require_active(),
        data.get("stock_item_id"),
        data.get("counted_quantity"),
    )
    return jsonify(line.to_dict())


@bp.post("/submit")
def submit():
    result = stock_take.submit(current_store(), _require_active())
    return jsonify(result.to_dict())


@bp.post("/discard")
def discard():
    stock_take.discard(current_store(), _require_active())
    return "", 204


@bp.get("/report")
def download_report():
    session = stock_take.last_submitted(current_store())
    if session is None:
        raise NotFound("No submitted stock take to report on.")
    lines = stock_take.report_lines(session)
    if request.args.get("format", "xlsx").lower() == "csv":
        filename = report_filename(session.submitted_at, "csv")
        return Response(
            render_report_csv(lines),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    filename = report_filename(session.submitted_at)
    return Response(
        render_report_xlsx(lines, session.submitted_at),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
