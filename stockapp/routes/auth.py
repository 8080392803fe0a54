from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from stockapp.auth import request_payload
from stockapp.extensions import db
from stockapp.models import User
from stockapp.services.validation import require_text

bp = Blueprint("auth", __name__, url_prefix="/auth")


@bp.post("/login")
def login():
    data = request_payload()
    username = (data.get("username") or "").strip()
    password = (data.get("password") or "").strip()
    user = User.query.filter_by(username=username).first()
    if user and user.check_password(password):
        login_user(user)
        return jsonify({"id": user.id, "username": user.username})
    return jsonify({"error": "Invalid credentials"}), 401


@bp.post("/register")
def register():
    data = request_payload()
    username = require_text(data, "username", "Username", max_length=255)
    password = require_text(data, "password", "Password", max_length=100)
    if len(password) < 6:
        return jsonify({"error": "Password must be at least 6 characters", "field": "password"}), 400
    if User.query.filter_by(username=username).first() is not None:
        return jsonify({"error": "That username is taken", "field": "username"}), 409

    user = User(username=username)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user)
    return jsonify({"id": user.id, "username": user.username}), 201


@bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"status": "logged_out"})


@bp.get("/me")
def me():
    if not current_user.is_authenticated:
        return jsonify({"authenticated": False})
    return jsonify(
        {"authenticated": True, "id": current_user.id, "username": current_user.username}
    )
