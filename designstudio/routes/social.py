from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import select

from ..auth import login_required, get_owned_or_404
from ..extensions import db
from ..models import AccountType, Platform, PostStatus, SocialAccount, SocialPost, UserCreation
from ..social import publish_post
from .helpers import clean_str, iso, parse_bool, parse_datetime, parse_int, request_data

social_bp = Blueprint("social", __name__)


def serialize_account(a: SocialAccount):
    # credentials never leave the server
    return {
        "id": a.id,
        "platform": a.platform.value,
        "username": a.username,
        "account_type": a.account_type.value,
        "is_active": a.is_active,
        "created_at": iso(a.created_at),
    }


def serialize_post(p: SocialPost):
    return {
        "id": p.id,
        "social_account_id": p.social_account_id,
        "platform": p.account.platform.value if p.account else None,
        "username": p.account.username if p.account else None,
        "creation_id": p.creation_id,
        "image_url": p.creation.image_url if p.creation else None,
        "caption": p.caption,
        "hashtags": p.hashtags or [],
        "scheduled_time": iso(p.scheduled_time),
        "status": p.status.value,
        "posted_at": iso(p.posted_at),
        "error_message": p.error_message,
        "created_at": iso(p.created_at),
    }


def _parse_hashtags(val):
    if val is None:
        return []
    if isinstance(val, str):
        val = val.split(",")
    tags = []
    for t in val:
        t = str(t).strip()
        if t:
            tags.append(t if t.startswith("#") else f"#{t}")
    return tags


def _enum_or_none(enum_cls, val):
    try:
        return enum_cls(str(val).strip().lower())
    except ValueError:
        return None


# -------------
# Accounts
# -------------
@social_bp.get("/social-accounts")
@login_required
def list_accounts():
    accounts = db.session.execute(
        select(SocialAccount)
        .where(SocialAccount.user_id == current_user.id)
        .order_by(SocialAccount.created_at.desc())
    ).scalars().all()
    return jsonify({"accounts": [serialize_account(a) for a in accounts]})


@social_bp.post("/social-accounts")
@login_required
def create_account():
    data = request_data(request)
    platform = _enum_or_none(Platform, data.get("platform")) if data.get("platform") else None
    username = clean_str(data.get("username"))
    password = data.get("password") or None
    if not platform or not username or not password:
        return jsonify({"error": "platform, username and password are required"}), 400

    account_type = AccountType.business
    if data.get("account_type"):
        account_type = _enum_or_none(AccountType, data["account_type"])
        if not account_type:
            return jsonify({"error": "account_type must be business or personal"}), 400

    a = SocialAccount(
        user_id=current_user.id,
        platform=platform,
        username=username,
        account_type=account_type,
        credentials={"password": password},
    )
    db.session.add(a)
    db.session.commit()
    return jsonify(serialize_account(a)), 201


@social_bp.put("/social-accounts/<int:account_id>")
@login_required
def update_account(account_id):
    a = get_owned_or_404(SocialAccount, account_id)
    data = request_data(request)
    if "username" in data:
        username = clean_str(data["username"])
        if not username:
            return jsonify({"error": "username cannot be empty"}), 400
        a.username = username
    if "account_type" in data:
        account_type = _enum_or_none(AccountType, data["account_type"])
        if not account_type:
            return jsonify({"error": "account_type must be business or personal"}), 400
        a.account_type = account_type
    if data.get("password"):
        a.credentials = {**(a.credentials or {}), "password": data["password"]}
    if "is_active" in data:
        a.is_active = parse_bool(data["is_active"], default=True)
    db.session.commit()
    return jsonify(serialize_account(a))


@social_bp.delete("/social-accounts/<int:account_id>")
@login_required
def delete_account(account_id):
    a = get_owned_or_404(SocialAccount, account_id)
    db.session.delete(a)
    db.session.commit()
    return "", 204


# -------------
# Posts
# -------------
@social_bp.get("/social-posts")
@login_required
def list_posts():
    stmt = select(SocialPost).where(SocialPost.user_id == current_user.id)
    status = clean_str(request.args.get("status"))
    if status:
        st = _enum_or_none(PostStatus, status)
        if not st:
            return jsonify({"error": f"Unknown status: {status}"}), 400
        stmt = stmt.where(SocialPost.status == st)
    posts = db.session.execute(stmt.order_by(SocialPost.scheduled_time)).scalars().all()
    return jsonify({"posts": [serialize_post(p) for p in posts]})


@social_bp.post("/social-posts")
@login_required
def create_post():
    data = request_data(request)
    account_id = parse_int(data.get("social_account_id"))
    caption = clean_str(data.get("caption"))
    scheduled_time = parse_datetime(data.get("scheduled_time"))
    if not account_id or not caption or not scheduled_time:
        return jsonify({"error": "social_account_id, caption and a valid ISO scheduled_time are required"}), 400

    account = get_owned_or_404(SocialAccount, account_id)
    creation_id = parse_int(data.get("creation_id"))
    if creation_id:
        get_owned_or_404(UserCreation, creation_id)

    p = SocialPost(
        user_id=current_user.id,
        social_account_id=account.id,
        creation_id=creation_id,
        caption=caption,
        hashtags=_parse_hashtags(data.get("hashtags")),
        scheduled_time=scheduled_time,
        status=PostStatus.scheduled,
    )
    db.session.add(p)
    db.session.commit()
    return jsonify(serialize_post(p)), 201


@social_bp.put("/social-posts/<int:post_id>")
@login_required
def update_post(post_id):
    p = get_owned_or_404(SocialPost, post_id)
    if p.status != PostStatus.scheduled:
        return jsonify({"error": f"Post is already {p.status.value}"}), 409

    data = request_data(request)
    if "caption" in data:
        caption = clean_str(data["caption"])
        if not caption:
            return jsonify({"error": "caption cannot be empty"}), 400
        p.caption = caption
    if "hashtags" in data:
        p.hashtags = _parse_hashtags(data["hashtags"])
    if "scheduled_time" in data:
        scheduled_time = parse_datetime(data["scheduled_time"])
        if not scheduled_time:
            return jsonify({"error": "scheduled_time must be ISO 8601"}), 400
        p.scheduled_time = scheduled_time
    if "social_account_id" in data:
        p.social_account_id = get_owned_or_404(SocialAccount, parse_int(data["social_account_id"], 0)).id
    if "creation_id" in data:
        creation_id = parse_int(data["creation_id"])
        if creation_id:
            get_owned_or_404(UserCreation, creation_id)
        p.creation_id = creation_id
    db.session.commit()
    return jsonify(serialize_post(p))


@social_bp.delete("/social-posts/<int:post_id>")
@login_required
def delete_post(post_id):
    p = get_owned_or_404(SocialPost, post_id)
    db.session.delete(p)
    db.session.commit()
    return "", 204


@social_bp.post("/social-posts/<int:post_id>/publish")
@login_required
def publish_now(post_id):
    p = get_owned_or_404(SocialPost, post_id)
    if p.status == PostStatus.posted:
        return jsonify({"error": "Post is already posted"}), 409
    publish_post(p)
    db.session.commit()
    return jsonify(serialize_post(p))
