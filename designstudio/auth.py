from __future__ import annotations

from flask import abort, jsonify
from flask_login import current_user, login_required  # noqa: F401  re-exported for blueprints
from sqlalchemy import select

from .extensions import db, login_manager
from .models import User


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def get_owned_or_404(model, obj_id: int):
    """Fetch a row belonging to the logged-in user; other users' rows are 404."""
    obj = db.session.execute(
        select(model).where(model.id == obj_id, model.user_id == current_user.id)
    ).scalar_one_or_none()
    if obj is None:
        abort(404)
    return obj
