"""Competitor ad search over the Google Custom Search API."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import requests
from flask import current_app
from sqlalchemy import select

from . import claude
from .errors import ServiceNotConfigured
from .extensions import db
from .models import AdSearchQuery, CompetitorAd, QueryType, SearchStatus

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_API_URL = "https://www.googleapis.com/customsearch/v1"
MAX_RESULTS_PER_REQUEST = 10


def is_configured() -> bool:
    return bool(current_app.config.get("GOOGLE_API_KEY") and current_app.config.get("GOOGLE_CSE_ID"))


def search_google(query: str, max_results: int = 10, region: Optional[str] = None) -> list[dict]:
    if not is_configured():
        raise ServiceNotConfigured("Google API key or Custom Search Engine ID is not configured.")

    params = {
        "key": current_app.config["GOOGLE_API_KEY"],
        "cx": current_app.config["GOOGLE_CSE_ID"],
        "q": query,
        "num": min(max_results, MAX_RESULTS_PER_REQUEST),
    }
    if region and len(region) == 2:
        params["gl"] = region.upper()

    logger.info("Google search for %r", query)
    resp = requests.get(GOOGLE_SEARCH_API_URL, params=params, timeout=15)
    resp.raise_for_status()
    items = resp.json().get("items") or []
    logger.info("Found %d search results for %r", len(items), query)
    return items


def _first_src(pagemap: dict, key: str) -> Optional[str]:
    entries = pagemap.get(key) or []
    if entries and isinstance(entries[0], dict):
        return entries[0].get("src")
    return None


def transform_result(item: dict, query: str, query_type: QueryType, user_id: Optional[int]) -> CompetitorAd:
    pagemap = item.get("pagemap") or {}
    thumb = _first_src(pagemap, "cse_thumbnail")
    return CompetitorAd(
        platform="google",
        brand=query,
        headline=item.get("title") or None,
        body=item.get("snippet") or None,
        image_url=_first_src(pagemap, "cse_image") or thumb,
        thumbnail_url=thumb,
        snapshot_url=item.get("link") or None,
        ad_id=item.get("cacheId") or item.get("link") or None,
        page_id=item.get("displayLink") or None,
        industry=None if query_type == QueryType.brand else query,
        tags=[],
        is_active=True,
        fetched_by_user_id=user_id,
        meta={
            "displayLink": item.get("displayLink"),
            "formattedUrl": item.get("formattedUrl"),
            "source": "google_custom_search",
            "lastSeen": datetime.utcnow().isoformat(),
        },
    )


def _find_duplicate(ad: CompetitorAd) -> Optional[CompetitorAd]:
    """Same brand and headline among the ads this user already fetched for the same kind of search."""
    stmt = select(CompetitorAd).where(
        CompetitorAd.brand == ad.brand,
        CompetitorAd.fetched_by_user_id == ad.fetched_by_user_id,
    )
    if ad.industry is None:
        stmt = stmt.where(CompetitorAd.industry.is_(None))
    else:
        stmt = stmt.where(CompetitorAd.industry == ad.industry)
    if ad.headline:
        stmt = stmt.where(CompetitorAd.headline == ad.headline)
    return db.session.execute(stmt.limit(1)).scalar_one_or_none()


def search_competitor_ads(
    query: str,
    query_type: QueryType,
    user_id: int,
    limit: int = 20,
    region: str = "US",
) -> tuple[AdSearchQuery, list[CompetitorAd]]:
    """Run a search, persist new ads and the search record, return both."""
    search = AdSearchQuery(
        user_id=user_id,
        query_type=query_type,
        query_text=query,
        region=region,
        status=SearchStatus.in_progress,
    )
    db.session.add(search)
    db.session.commit()

    term = f"{query} companies" if query_type == QueryType.industry else query
    try:
        items = search_google(term, max_results=limit, region=region)
    except Exception as e:
        search.status = SearchStatus.failed
        search.error_message = str(e)
        db.session.commit()
        logger.error("Competitor ad search %s failed: %s", search.id, e)
        raise

    ads = []
    for item in items:
        ad = transform_result(item, query, query_type, user_id)
        existing = _find_duplicate(ad)
        if existing:
            ads.append(existing)
            continue
        db.session.add(ad)
        ads.append(ad)

    search.status = SearchStatus.completed
    search.results_count = len(ads)
    db.session.commit()
    return search, ads


def recent_searches(user_id: int, limit: int = 10) -> list[AdSearchQuery]:
    return db.session.execute(
        select(AdSearchQuery)
        .where(AdSearchQuery.user_id == user_id)
        .order_by(AdSearchQuery.created_at.desc(), AdSearchQuery.id.desc())
        .limit(limit)
    ).scalars().all()


def ads_for_search(search: AdSearchQuery) -> list[CompetitorAd]:
    stmt = select(CompetitorAd).where(CompetitorAd.fetched_by_user_id == search.user_id)
    if search.query_type == QueryType.brand:
        stmt = stmt.where(CompetitorAd.brand == search.query_text)
    else:
        stmt = stmt.where(CompetitorAd.industry == search.query_text)
    return db.session.execute(stmt.order_by(CompetitorAd.created_at.desc())).scalars().all()


STYLE_SYSTEM_PROMPT = (
    "You are a professional advertising designer with extensive experience analyzing visual "
    "design elements in marketing materials. Provide a concise, detailed description of the "
    "visual style of advertisements."
)


def generate_style_description(ad: CompetitorAd) -> str:
    """Ask Claude for a short style description and store it on the ad."""
    if not ad.image_url:
        return "No image available for style analysis"

    prompt = (
        f"Analyze this {ad.platform} advertisement from {ad.brand} and describe its visual style "
        "in a concise paragraph (max 100 words).\n\n"
        "Focus on color palette, typography, composition and layout, whitespace, image treatment "
        "and overall aesthetic.\n\n"
        f"Headline: {ad.headline or 'N/A'}\n"
        f"Body text: {ad.body or 'N/A'}\n"
        f"CTA: {ad.cta or 'N/A'}\n"
        f"Image URL: {ad.image_url}\n\n"
        "Provide only the style description, no introduction or conclusion."
    )
    description = claude.complete(
        prompt, system=STYLE_SYSTEM_PROMPT, model=claude.analysis_model(), max_tokens=300
    ).strip()
    ad.style_description = description
    db.session.commit()
    return description
