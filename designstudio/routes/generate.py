import base64
import json
import logging
import uuid
from dataclasses import replace

from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import select

from .. import adburst
from ..auth import login_required, get_owned_or_404
from ..billing import InsufficientCredits, record_transaction, require_credits
from ..errors import DesignError, QuotaExceededError
from ..extensions import db
from ..models import BrandKit, CompetitorAd, DesignConfig, TransactionType
from ..rendering import STYLE_VARIATIONS, GenerationOptions, TemplateInfo, render_design
from .brand_kits import serialize_brand_kit
from .helpers import clean_str, decode_image_data, file_to_b64, parse_int, request_data

logger = logging.getLogger(__name__)

generate_bp = Blueprint("generate", __name__)

MAX_DESIGNS = len(STYLE_VARIATIONS)


def _default_config():
    return db.session.execute(
        select(DesignConfig)
        .where(DesignConfig.user_id.is_(None), DesignConfig.active.is_(True))
        .order_by(DesignConfig.id)
        .limit(1)
    ).scalar_one_or_none()


def _credits_per_design(config) -> int:
    return config.credits_per_design if config else 1


def _json_field(val):
    """Multipart posts carry nested objects as JSON strings."""
    if isinstance(val, str):
        try:
            return json.loads(val)
        except ValueError:
            return None
    return val


def _image_b64(data, field):
    b64 = file_to_b64(request.files.get(field))
    if b64:
        return b64
    val = clean_str(data.get(field))
    if not val:
        return None
    raw, _ = decode_image_data(val)
    return base64.b64encode(raw).decode("ascii")


def _brand_kit(data):
    kit_id = parse_int(data.get("brandKitId"))
    if kit_id:
        return get_owned_or_404(BrandKit, kit_id)
    return db.session.execute(
        select(BrandKit).where(BrandKit.user_id == current_user.id, BrandKit.is_active.is_(True)).limit(1)
    ).scalar_one_or_none()


def _inspiration_styles(data) -> list:
    ids = _json_field(data.get("inspirationAdIds"))
    if isinstance(ids, (int, str)):
        ids = str(ids).split(",")
    ids = [i for i in (parse_int(v) for v in ids or []) if i]
    if not ids:
        return []
    ads = db.session.execute(select(CompetitorAd).where(CompetitorAd.id.in_(ids))).scalars().all()
    return [a.style_description for a in ads if a.style_description]


def _insufficient(e: InsufficientCredits, design_count):
    return jsonify({
        "error": "Insufficient credits",
        "creditsRequired": e.required,
        "creditsAvailable": e.available,
        "designCount": design_count,
    }), 403


def _design_payload(image: bytes, style: str) -> dict:
    return {
        "id": uuid.uuid4().hex,
        "style": style,
        "imageBase64": "data:image/jpeg;base64," + base64.b64encode(image).decode("ascii"),
    }


def _failure_response(error):
    error = error or DesignError()
    if isinstance(error, QuotaExceededError):
        return jsonify({"error": error.message, "quotaExceeded": True}), 429
    return jsonify({"error": error.message}), error.status_code


def _render_all(variants):
    """Render (style, options) pairs in order.

    Fallback renders are dropped; a quota error stops the remaining ones.
    Returns (designs, last_error).
    """
    designs, last_error = [], None
    for style, options in variants:
        try:
            result = render_design(options)
        except DesignError as e:
            result, last_error = None, e
        else:
            if not result.fallback:
                designs.append(_design_payload(result.image, style))
                continue
            last_error = result.error
        logger.warning("Design variation %r failed: %s", style, last_error.message if last_error else "unknown")
        if isinstance(last_error, QuotaExceededError):
            break
    return designs, last_error


def _charge(per_design, count, description):
    used = per_design * count
    record_transaction(current_user, used, TransactionType.subtract, description)
    db.session.commit()
    return {"balance": current_user.credits_balance, "used": used}


@generate_bp.post("/generate-ai")
@login_required
def generate_ai():
    data = request_data(request)
    prompt = clean_str(data.get("prompt"))
    if not prompt:
        return jsonify({"error": "Prompt is required"}), 400

    design_count = max(1, min(parse_int(data.get("designCount"), MAX_DESIGNS), MAX_DESIGNS))

    config_id = parse_int(data.get("configId"))
    if config_id:
        config = db.session.get(DesignConfig, config_id)
        if not config or (config.user_id is not None and config.user_id != current_user.id):
            return jsonify({"error": "Design configuration not found"}), 404
    else:
        config = _default_config()
    per_design = _credits_per_design(config)

    required = per_design * design_count
    try:
        require_credits(current_user, required)
    except InsufficientCredits as e:
        return _insufficient(e, design_count)

    try:
        background = _image_b64(data, "backgroundImage")
        logo = _image_b64(data, "logo")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    kit = _brand_kit(data)
    base = GenerationOptions(
        prompt=prompt,
        background_image_b64=background,
        logo_b64=logo,
        aspect_ratio=clean_str(data.get("aspectRatio")),
        template=TemplateInfo.from_dict(_json_field(data.get("template"))),
        brand_kit=serialize_brand_kit(kit) if kit else None,
        inspiration_styles=_inspiration_styles(data),
    )
    variants = [
        (style, replace(base, prompt=f"{prompt} {style}"))
        for style in STYLE_VARIATIONS[:design_count]
    ]

    designs, last_error = _render_all(variants)
    if not designs:
        return _failure_response(last_error)

    credits = _charge(per_design, len(designs), f"Generated {len(designs)} design(s)")
    logger.info("User %s generated %d/%d designs", current_user.id, len(designs), design_count)
    return jsonify({"designs": designs, "credits": credits})


@generate_bp.post("/adburst")
@login_required
def adburst_generate():
    data = request_data(request)
    product_name = clean_str(data.get("productName"))
    if not product_name:
        return jsonify({"error": "productName is required"}), 400

    images = []
    for field in adburst.IMAGE_FIELDS:
        f = request.files.get(field)
        if not f or not f.filename:
            return jsonify({"error": "Exactly three images (image1, image2, image3) are required"}), 400
        if not (f.mimetype or "").startswith("image/"):
            return jsonify({"error": f"{field} must be an image"}), 400
        images.append(file_to_b64(f))
    if not all(images):
        return jsonify({"error": "Uploaded images must not be empty"}), 400

    per_design = _credits_per_design(_default_config())
    required = per_design * len(images)
    try:
        require_credits(current_user, required)
    except InsufficientCredits as e:
        return _insufficient(e, len(images))

    script = adburst.write_script(
        product_name,
        clean_str(data.get("productDescription")),
        clean_str(data.get("targetAudience")),
    )
    variants = [
        (f"image{i}", adburst.ad_options(product_name, script, b64))
        for i, b64 in enumerate(images, start=1)
    ]
    designs, last_error = _render_all(variants)
    if not designs:
        return _failure_response(last_error)

    credits = _charge(per_design, len(designs), f"AdBurst for {product_name}")
    return jsonify({"success": True, "script": script, "designs": designs, "credits": credits})
