from __future__ import annotations

import logging
from datetime import datetime

import requests
from flask import current_app
from sqlalchemy import select

from .extensions import db
from .models import PostStatus, SocialPost

logger = logging.getLogger(__name__)


def _absolute(url: str | None) -> str | None:
    if not url or url.startswith(("http://", "https://", "data:")):
        return url
    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    return f"{base}{url}" if base else url


def publish_post(post: SocialPost) -> SocialPost:
    """Deliver one post to the configured publishing endpoint.

    Success marks it posted; any failure marks it failed with the reason.
    No retry. Caller commits.
    """
    url = current_app.config.get("SOCIAL_PUBLISH_URL")
    account = post.account
    payload = {
        "platform": account.platform.value,
        "username": account.username,
        "account_type": account.account_type.value,
        "caption": post.caption,
        "hashtags": post.hashtags or [],
        "image_url": _absolute(post.creation.image_url) if post.creation else None,
    }
    try:
        if not url:
            raise RuntimeError("No social publishing endpoint configured (SOCIAL_PUBLISH_URL).")
        resp = requests.post(url, json=payload, timeout=30)
        resp.raise_for_status()
    except Exception as e:
        post.status = PostStatus.failed
        post.error_message = str(e)
        logger.warning("Publishing post %s to %s failed: %s", post.id, payload["platform"], e)
        return post

    post.status = PostStatus.posted
    post.posted_at = datetime.utcnow()
    post.error_message = None
    logger.info("Published post %s to %s", post.id, payload["platform"])
    return post


def publish_due_posts(now: datetime | None = None) -> tuple[int, int]:
    """Publish every scheduled post whose time has come. Returns (posted, failed)."""
    now = now or datetime.utcnow()
    due = db.session.execute(
        select(SocialPost)
        .where(SocialPost.status == PostStatus.scheduled, SocialPost.scheduled_time <= now)
        .order_by(SocialPost.scheduled_time)
    ).scalars().all()

    posted = failed = 0
    for post in due:
        publish_post(post)
        if post.status == PostStatus.posted:
            posted += 1
        else:
            failed += 1
    db.session.commit()
    return posted, failed
