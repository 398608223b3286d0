"""Credit ledger and Stripe checkout for credit packages."""
from __future__ import annotations

import logging
from typing import Optional

import stripe
from flask import current_app
from sqlalchemy import select

from .errors import ServiceNotConfigured
from .extensions import db
from .models import CreditTransaction, TransactionType, User

logger = logging.getLogger(__name__)

# package -> credits granted, price in cents, config key holding the Stripe price id
CREDIT_PACKAGES = {
    "STARTER": {"credits": 50, "amount": 499, "price_config": "STRIPE_PRICE_ID_STARTER"},
    "PRO": {"credits": 200, "amount": 1499, "price_config": "STRIPE_PRICE_ID_PRO"},
}


class InsufficientCredits(Exception):
    def __init__(self, required: int, available: int):
        super().__init__(f"Insufficient credits: {required} required, {available} available")
        self.required = required
        self.available = available


def record_transaction(
    user: User,
    amount: int,
    transaction_type: TransactionType,
    description: Optional[str] = None,
    reference: Optional[str] = None,
) -> CreditTransaction:
    """Append a ledger row and apply it to the balance.

    ``initial`` rows only document the starting balance. The balance is
    clamped at zero. Caller commits.
    """
    tx = CreditTransaction(
        user_id=user.id,
        amount=amount,
        transaction_type=transaction_type,
        description=description,
        reference=reference,
    )
    db.session.add(tx)

    if transaction_type == TransactionType.add:
        user.credits_balance += amount
    elif transaction_type == TransactionType.subtract:
        user.credits_balance = max(0, user.credits_balance - amount)

    logger.info(
        "Credits %s %d for user %s (balance %d)",
        transaction_type.value, amount, user.id, user.credits_balance,
    )
    return tx


def require_credits(user: User, required: int) -> None:
    if user.credits_balance < required:
        raise InsufficientCredits(required, user.credits_balance)


def credit_history(user_id: int) -> list[CreditTransaction]:
    return db.session.execute(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
    ).scalars().all()


# -----------------------------
# Stripe
# -----------------------------
def _configure_stripe() -> None:
    key = current_app.config.get("STRIPE_SECRET_KEY")
    if not key:
        raise ServiceNotConfigured("Payment system not configured.")
    stripe.api_key = key


def create_checkout_session(user: User, package_type: str, success_url: str, cancel_url: str) -> str:
    package = CREDIT_PACKAGES.get(package_type)
    price_id = current_app.config.get(package["price_config"]) if package else None
    if not package or not price_id:
        raise ValueError(f"Invalid package type or price ID not configured: {package_type}")

    _configure_stripe()
    metadata = {
        "userId": str(user.id),
        "packageType": package_type,
        "credits": str(package["credits"]),
    }
    session = stripe.checkout.Session.create(
        payment_method_types=["card"],
        line_items=[{"price": price_id, "quantity": 1}],
        mode="payment",
        success_url=f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=cancel_url,
        client_reference_id=str(user.id),
        metadata=metadata,
    )
    logger.info("Stripe checkout session %s created for user %s (%s)", session.id, user.id, package_type)
    return session.url or ""


def session_data(session) -> dict:
    """Plain dict view of a Stripe session (StripeObject is not a dict in newer SDKs)."""
    if hasattr(session, "to_dict"):
        return session.to_dict()
    return dict(session)


def credit_paid_session(session) -> Optional[CreditTransaction]:
    """Credit a completed checkout session once; returns None when already credited.

    Raises ValueError when the session is unpaid or its metadata is unusable.
    """
    session = session_data(session)
    if session.get("payment_status") != "paid":
        raise ValueError(f"Session {session.get('id')} is not paid")
    metadata = session.get("metadata") or {}
    try:
        user_id = int(metadata.get("userId"))
        credits = int(metadata.get("credits"))
    except (TypeError, ValueError):
        raise ValueError(f"Session {session.get('id')} has invalid metadata")

    reference = f"stripe:{session.get('id')}"
    already = db.session.execute(
        select(CreditTransaction.id).where(CreditTransaction.reference == reference)
    ).first()
    if already:
        logger.info("Stripe session %s already credited", session.get("id"))
        return None

    user = db.session.get(User, user_id)
    if not user:
        raise ValueError(f"User {user_id} from session {session.get('id')} not found")

    package_type = metadata.get("packageType") or "Credit"
    tx = record_transaction(
        user, credits, TransactionType.add, f"{package_type} Package purchase", reference=reference
    )
    db.session.commit()
    return tx


def retrieve_checkout_session(session_id: str):
    _configure_stripe()
    return stripe.checkout.Session.retrieve(session_id)


def construct_webhook_event(payload: bytes, signature: Optional[str]):
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        raise ServiceNotConfigured("Stripe webhook secret not configured.")
    _configure_stripe()
    return stripe.Webhook.construct_event(payload, signature, secret)
