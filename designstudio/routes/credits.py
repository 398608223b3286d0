import logging

import stripe
from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import select, or_

from .. import billing
from ..auth import login_required
from ..extensions import db
from ..models import DesignConfig, TransactionType
from .helpers import clean_str, iso, parse_bool, parse_int, request_data

logger = logging.getLogger(__name__)

credits_bp = Blueprint("credits", __name__)


def serialize_transaction(t):
    return {
        "id": t.id,
        "amount": t.amount,
        "transaction_type": t.transaction_type.value,
        "description": t.description,
        "created_at": iso(t.created_at),
    }


def serialize_config(c: DesignConfig):
    return {
        "id": c.id,
        "name": c.name,
        "num_variations": c.num_variations,
        "credits_per_design": c.credits_per_design,
        "active": c.active,
        "is_system": c.is_system,
        "created_at": iso(c.created_at),
    }


# -------------
# Credits
# -------------
@credits_bp.get("/credits")
@login_required
def get_credits():
    return jsonify({
        "balance": current_user.credits_balance,
        "is_premium": current_user.is_premium,
        "history": [serialize_transaction(t) for t in billing.credit_history(current_user.id)],
    })


@credits_bp.post("/credits/add")
@login_required
def add_credits():
    data = request_data(request)
    amount = data.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        amount = parse_int(amount) if isinstance(amount, str) else None
    if amount is None or amount <= 0:
        return jsonify({"error": "Invalid amount"}), 400

    tx = billing.record_transaction(
        current_user, amount, TransactionType.add, clean_str(data.get("description")) or "Credits added"
    )
    db.session.commit()
    return jsonify({"transaction": serialize_transaction(tx), "new_balance": current_user.credits_balance})


# -------------
# Design configs
# -------------
def _validate_config(data, partial):
    errors = {}
    if not partial or "name" in data:
        if not clean_str(data.get("name")):
            errors["name"] = "Name is required"
    for field in ("num_variations", "credits_per_design"):
        if field in data:
            val = parse_int(data[field])
            if val is None or val < 1:
                errors[field] = "Must be a positive integer"
    return errors


@credits_bp.get("/design-configs")
@login_required
def list_design_configs():
    configs = db.session.execute(
        select(DesignConfig)
        .where(or_(DesignConfig.user_id.is_(None), DesignConfig.user_id == current_user.id))
        .order_by(DesignConfig.id)
    ).scalars().all()
    return jsonify({"configs": [serialize_config(c) for c in configs]})


@credits_bp.post("/design-configs")
@login_required
def create_design_config():
    data = request_data(request)
    errors = _validate_config(data, partial=False)
    if errors:
        return jsonify({"error": "Invalid design config", "errors": errors}), 400
    c = DesignConfig(
        user_id=current_user.id,
        name=clean_str(data["name"]),
        num_variations=parse_int(data.get("num_variations"), 3),
        credits_per_design=parse_int(data.get("credits_per_design"), 1),
        active=parse_bool(data.get("active"), default=True),
    )
    db.session.add(c)
    db.session.commit()
    return jsonify(serialize_config(c)), 201


@credits_bp.put("/design-configs/<int:config_id>")
@login_required
def update_design_config(config_id):
    c = db.session.get(DesignConfig, config_id)
    if not c or (c.user_id is not None and c.user_id != current_user.id):
        return jsonify({"error": "not found"}), 404
    if c.is_system:
        return jsonify({"error": "System configurations are read-only"}), 403

    data = request_data(request)
    errors = _validate_config(data, partial=True)
    if errors:
        return jsonify({"error": "Invalid design config", "errors": errors}), 400
    if "name" in data:
        c.name = clean_str(data["name"])
    if "num_variations" in data:
        c.num_variations = parse_int(data["num_variations"])
    if "credits_per_design" in data:
        c.credits_per_design = parse_int(data["credits_per_design"])
    if "active" in data:
        c.active = parse_bool(data["active"], default=True)
    db.session.commit()
    return jsonify(serialize_config(c))


# -------------
# Stripe
# -------------
@credits_bp.post("/stripe/create-checkout")
@login_required
def create_checkout():
    data = request_data(request)
    package_type = clean_str(data.get("packageType"))
    success_url = clean_str(data.get("successUrl"))
    cancel_url = clean_str(data.get("cancelUrl"))
    if not package_type or not success_url or not cancel_url:
        return jsonify({"error": "packageType, successUrl and cancelUrl are required"}), 400

    try:
        url = billing.create_checkout_session(current_user, package_type.upper(), success_url, cancel_url)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except stripe.error.StripeError as e:
        logger.error("Stripe checkout failed for user %s: %s", current_user.id, e)
        return jsonify({"error": "Failed to create checkout session"}), 502
    return jsonify({"url": url})


@credits_bp.post("/stripe/verify-payment")
@login_required
def verify_payment():
    data = request_data(request)
    session_id = clean_str(data.get("sessionId"))
    if not session_id:
        return jsonify({"error": "sessionId is required"}), 400

    try:
        session = billing.session_data(billing.retrieve_checkout_session(session_id))
    except stripe.error.StripeError as e:
        logger.error("Stripe session lookup %s failed: %s", session_id, e)
        return jsonify({"error": "Failed to verify payment"}), 502

    metadata = session.get("metadata") or {}
    if str(metadata.get("userId")) != str(current_user.id):
        return jsonify({"error": "not found"}), 404
    try:
        tx = billing.credit_paid_session(session)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "success": True,
        "alreadyProcessed": tx is None,
        "credits": parse_int(metadata.get("credits"), 0),
        "balance": current_user.credits_balance,
    })


@credits_bp.post("/stripe/webhook")
def stripe_webhook():
    payload = request.get_data()
    signature = request.headers.get("Stripe-Signature")
    try:
        event = billing.construct_webhook_event(payload, signature)
    except (ValueError, stripe.error.SignatureVerificationError) as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        return jsonify({"error": "Invalid signature"}), 400

    if event["type"] == "checkout.session.completed":
        session = billing.session_data(event["data"]["object"])
        try:
            billing.credit_paid_session(session)
        except ValueError as e:
            logger.warning("Webhook session %s not credited: %s", session.get("id"), e)
    return jsonify({"received": True})
