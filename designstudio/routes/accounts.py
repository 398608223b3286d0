from flask import Blueprint, jsonify, request
from flask_login import current_user, login_user, logout_user
from sqlalchemy import select

from ..billing import record_transaction
from ..extensions import db
from ..models import STARTING_CREDITS, TransactionType, User
from .helpers import clean_str, request_data

accounts_bp = Blueprint("accounts", __name__)

MIN_PASSWORD_LENGTH = 6


def serialize_user(u):
    return {
        "id": u.id,
        "username": u.username,
        "email": u.email,
        "display_name": u.display_name,
        "credits_balance": u.credits_balance,
        "is_premium": u.is_premium,
    }


@accounts_bp.post("/register")
def register():
    data = request_data(request)
    username = clean_str(data.get("username"))
    password = data.get("password") or ""
    errors = {}
    if not username:
        errors["username"] = "Username is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if errors:
        return jsonify({"error": "Invalid input", "errors": errors}), 400

    exists = db.session.execute(select(User.id).where(User.username == username)).first()
    if exists:
        return jsonify({"error": "Username already exists"}), 400

    u = User(
        username=username,
        email=clean_str(data.get("email")),
        display_name=clean_str(data.get("display_name")),
        credits_balance=STARTING_CREDITS,
    )
    u.set_password(password)
    db.session.add(u); db.session.flush()
    record_transaction(u, STARTING_CREDITS, TransactionType.initial, "Initial credits allocation")
    db.session.commit()
    return jsonify({"id": u.id, "username": u.username}), 201


@accounts_bp.post("/login")
def login():
    data = request_data(request)
    username = clean_str(data.get("username"))
    password = data.get("password") or ""
    u = db.session.execute(select(User).where(User.username == username)).scalar_one_or_none() if username else None
    if not u or not u.check_password(password):
        return jsonify({"error": "Incorrect username or password"}), 401
    login_user(u)
    return jsonify({"id": u.id, "username": u.username})


@accounts_bp.post("/logout")
def logout():
    logout_user()
    return jsonify({"message": "Logged out successfully"})


@accounts_bp.get("/user")
def whoami():
    if not current_user.is_authenticated:
        return jsonify({"error": "Not authenticated"}), 401
    return jsonify(serialize_user(current_user))
