from __future__ import annotations

from flask import g, request
from flask_login import current_user

from stockapp.extensions import login_manager
from stockapp.services.record_store import RecordStore


def login_guard():
    """``before_request`` handler that rejects anonymous API calls."""

    if request.method == "OPTIONS":
        return None
    if not current_user.is_authenticated:
        return login_manager.unauthorized()
    return None


def current_store() -> RecordStore:
    """Record store scoped to the signed-in user, cached for the request."""

    store = getattr(g, "record_store", None)
    if store is None or store.user_id != current_user.id:
        store = RecordStore(current_user.id)
        g.record_store = store
    return store


def request_payload() -> dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()
