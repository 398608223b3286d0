import logging
import os
import uuid

from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from sqlalchemy import select

from ..auth import login_required, get_owned_or_404
from ..extensions import db
from ..models import UserCreation
from .helpers import clean_str, decode_image_data, parse_bool, request_data, iso

logger = logging.getLogger(__name__)

creations_bp = Blueprint("creations", __name__)

MEDIA_URL_PREFIX = "/media/"
TEXT_FIELDS = ("prompt", "headline", "content", "style_prompt", "aspect_ratio")

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def serialize_creation(c: UserCreation):
    return {
        "id": c.id,
        "name": c.name,
        "image_url": c.image_url,
        "prompt": c.prompt,
        "headline": c.headline,
        "content": c.content,
        "style_prompt": c.style_prompt,
        "template": c.template,
        "aspect_ratio": c.aspect_ratio,
        "favorite": c.favorite,
        "metadata": c.meta,
        "created_at": iso(c.created_at),
        "updated_at": iso(c.updated_at),
    }


def serialize_flyer(c: UserCreation):
    return {
        "id": c.id,
        "name": c.name,
        "imageUrl": c.image_url,
        "headline": c.headline,
        "content": c.content,
        "stylePrompt": c.style_prompt,
        "template": c.template,
        "createdAt": iso(c.created_at),
    }


def store_image(value: str) -> str:
    """Write a base64 image to the media folder and return the new filename."""
    data, mime = decode_image_data(value)
    folder = current_app.config["MEDIA_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{_EXTENSIONS.get(mime, '.jpg')}"
    with open(os.path.join(folder, filename), "wb") as fh:
        fh.write(data)
    return filename


def remove_stored_image(filename: str | None) -> None:
    """Delete a media file this app wrote, unless a creation still points at it."""
    if not filename:
        return
    in_use = db.session.execute(
        select(UserCreation.id).where(
            (UserCreation.stored_image == filename)
            | (UserCreation.image_url == MEDIA_URL_PREFIX + filename)
        )
    ).first()
    if in_use:
        logger.info("Media file %s still referenced; keeping it", filename)
        return
    path = os.path.join(current_app.config["MEDIA_FOLDER"], os.path.basename(filename))
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("Media file already gone: %s", path)


def _resolve_image(data):
    """Return (image_url, stored filename). image_base64 wins over image_url.

    Raises ValueError on bad base64.
    """
    b64 = clean_str(data.get("image_base64"))
    if b64:
        filename = store_image(b64)
        return MEDIA_URL_PREFIX + filename, filename
    return clean_str(data.get("image_url")), None


def _apply(c: UserCreation, data):
    if "name" in data:
        c.name = clean_str(data["name"]) or "Untitled Flyer"
    for field in TEXT_FIELDS:
        if field in data:
            setattr(c, field, clean_str(data[field]))
    if "template" in data:
        c.template = clean_str(data["template"]) or "default"
    if "favorite" in data:
        c.favorite = parse_bool(data["favorite"])
    if "metadata" in data:
        c.meta = data["metadata"] if isinstance(data["metadata"], dict) else None


def _user_creations():
    return db.session.execute(
        select(UserCreation)
        .where(UserCreation.user_id == current_user.id)
        .order_by(UserCreation.created_at.desc(), UserCreation.id.desc())
    ).scalars().all()


@creations_bp.get("/creations")
@login_required
def list_creations():
    return jsonify({"creations": [serialize_creation(c) for c in _user_creations()]})


@creations_bp.get("/creations/<int:creation_id>")
@login_required
def get_creation(creation_id):
    return jsonify(serialize_creation(get_owned_or_404(UserCreation, creation_id)))


@creations_bp.post("/creations")
@login_required
def create_creation():
    data = request_data(request)
    try:
        image_url, stored = _resolve_image(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not image_url:
        return jsonify({"error": "image_url or image_base64 is required"}), 400

    c = UserCreation(user_id=current_user.id, image_url=image_url, stored_image=stored)
    _apply(c, data)
    db.session.add(c)
    db.session.commit()
    return jsonify(serialize_creation(c)), 201


@creations_bp.put("/creations/<int:creation_id>")
@login_required
def update_creation(creation_id):
    c = get_owned_or_404(UserCreation, creation_id)
    data = request_data(request)
    try:
        image_url, stored = _resolve_image(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    old_stored = None
    if image_url and image_url != c.image_url:
        old_stored = c.stored_image
        c.image_url = image_url
        c.stored_image = stored

    _apply(c, data)
    db.session.commit()
    remove_stored_image(old_stored)
    return jsonify(serialize_creation(c))


@creations_bp.delete("/creations/<int:creation_id>")
@login_required
def delete_creation(creation_id):
    c = get_owned_or_404(UserCreation, creation_id)
    stored = c.stored_image
    db.session.delete(c)
    db.session.commit()
    remove_stored_image(stored)
    return "", 204


@creations_bp.get("/my-flyers")
@login_required
def my_flyers():
    return jsonify({"flyers": [serialize_flyer(c) for c in _user_creations()]})
