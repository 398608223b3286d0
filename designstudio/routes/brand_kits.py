import re

from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import select, update

from ..auth import login_required, get_owned_or_404
from ..extensions import db
from ..models import BrandKit
from .helpers import clean_str, parse_bool, request_data, iso

brand_kits_bp = Blueprint("brand_kits", __name__)

COLOR_FIELDS = ("primary_color", "secondary_color", "accent_color")
TEXT_FIELDS = ("heading_font", "body_font", "logo_url", "brand_voice")

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def serialize_brand_kit(k: BrandKit):
    return {
        "id": k.id,
        "name": k.name,
        "primary_color": k.primary_color,
        "secondary_color": k.secondary_color,
        "accent_color": k.accent_color,
        "heading_font": k.heading_font,
        "body_font": k.body_font,
        "logo_url": k.logo_url,
        "brand_voice": k.brand_voice,
        "is_active": k.is_active,
        "created_at": iso(k.created_at),
        "updated_at": iso(k.updated_at),
    }


def _validate(data, require_name):
    errors = {}
    if require_name or "name" in data:
        if not clean_str(data.get("name")):
            errors["name"] = "Name is required"
    for field in COLOR_FIELDS:
        val = clean_str(data.get(field))
        if val and not _HEX_COLOR_RE.match(val):
            errors[field] = "Must be a hex color like #1a2b3c"
    return errors


def _apply(kit: BrandKit, data):
    if "name" in data:
        kit.name = clean_str(data["name"])
    for field in COLOR_FIELDS + TEXT_FIELDS:
        if field in data:
            setattr(kit, field, clean_str(data[field]))


def _deactivate_all(user_id, except_id=None):
    stmt = update(BrandKit).where(BrandKit.user_id == user_id, BrandKit.is_active.is_(True))
    if except_id is not None:
        stmt = stmt.where(BrandKit.id != except_id)
    db.session.execute(stmt.values(is_active=False))


@brand_kits_bp.get("/brand-kits")
@login_required
def list_brand_kits():
    kits = db.session.execute(
        select(BrandKit)
        .where(BrandKit.user_id == current_user.id)
        .order_by(BrandKit.created_at.desc(), BrandKit.id.desc())
    ).scalars().all()
    return jsonify({"brandKits": [serialize_brand_kit(k) for k in kits]})


@brand_kits_bp.get("/brand-kits/active")
@login_required
def active_brand_kit():
    kit = db.session.execute(
        select(BrandKit).where(BrandKit.user_id == current_user.id, BrandKit.is_active.is_(True)).limit(1)
    ).scalar_one_or_none()
    if not kit:
        return jsonify({"error": "No active brand kit"}), 404
    return jsonify({"brandKit": serialize_brand_kit(kit)})


@brand_kits_bp.post("/brand-kits")
@login_required
def create_brand_kit():
    data = request_data(request)
    errors = _validate(data, require_name=True)
    if errors:
        return jsonify({"error": "Invalid brand kit", "errors": errors}), 400

    kit = BrandKit(user_id=current_user.id)
    _apply(kit, data)
    kit.is_active = parse_bool(data.get("is_active"))
    db.session.add(kit); db.session.flush()
    if kit.is_active:
        _deactivate_all(current_user.id, except_id=kit.id)
    db.session.commit()
    return jsonify(serialize_brand_kit(kit)), 201


@brand_kits_bp.put("/brand-kits/<int:kit_id>")
@login_required
def update_brand_kit(kit_id):
    kit = get_owned_or_404(BrandKit, kit_id)
    data = request_data(request)
    errors = _validate(data, require_name=False)
    if errors:
        return jsonify({"error": "Invalid brand kit", "errors": errors}), 400

    _apply(kit, data)
    if "is_active" in data:
        kit.is_active = parse_bool(data["is_active"])
        if kit.is_active:
            _deactivate_all(current_user.id, except_id=kit.id)
    db.session.commit()
    return jsonify(serialize_brand_kit(kit))


@brand_kits_bp.delete("/brand-kits/<int:kit_id>")
@login_required
def delete_brand_kit(kit_id):
    kit = get_owned_or_404(BrandKit, kit_id)
    db.session.delete(kit)
    db.session.commit()
    return "", 204


@brand_kits_bp.post("/brand-kits/deactivate")
@login_required
def deactivate_brand_kits():
    _deactivate_all(current_user.id)
    db.session.commit()
    return jsonify({"message": "All brand kits deactivated"})
