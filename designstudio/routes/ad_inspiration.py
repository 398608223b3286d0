import logging

import requests
from flask import Blueprint, jsonify, request
from flask_login import current_user

from .. import ad_search
from ..auth import login_required, get_owned_or_404
from ..errors import ServiceNotConfigured
from ..extensions import db
from ..models import AdSearchQuery, CompetitorAd, QueryType
from .helpers import clean_str, iso, parse_int, request_data

logger = logging.getLogger(__name__)

ad_inspiration_bp = Blueprint("ad_inspiration", __name__)

RESPONSE_AD_LIMIT = 10


def serialize_ad(a: CompetitorAd):
    return {
        "id": a.id,
        "brand": a.brand,
        "platform": a.platform,
        "headline": a.headline,
        "body": a.body,
        "imageUrl": a.image_url,
        "thumbnailUrl": a.thumbnail_url,
        "cta": a.cta,
        "snapshotUrl": a.snapshot_url,
        "industry": a.industry,
        "tags": a.tags or [],
        "styleDescription": a.style_description,
        "createdAt": iso(a.created_at),
    }


def serialize_search(s: AdSearchQuery):
    return {
        "id": s.id,
        "queryType": s.query_type.value,
        "queryText": s.query_text,
        "region": s.region,
        "status": s.status.value,
        "resultsCount": s.results_count,
        "errorMessage": s.error_message,
        "createdAt": iso(s.created_at),
    }


@ad_inspiration_bp.post("/ad-inspiration/search")
@login_required
def search():
    data = request_data(request)
    query = clean_str(data.get("query"))
    search_type = clean_str(data.get("searchType"))
    if not query:
        return jsonify({"error": "query is required"}), 400
    try:
        query_type = QueryType(search_type or "")
    except ValueError:
        return jsonify({"error": "searchType must be one of brand, keyword, industry"}), 400
    if not ad_search.is_configured():
        raise ServiceNotConfigured("Google API key or Custom Search Engine ID is not configured.")

    region = clean_str(data.get("region")) or "US"
    try:
        record, ads = ad_search.search_competitor_ads(query, query_type, current_user.id, region=region)
    except requests.RequestException as e:
        return jsonify({"error": f"Ad search failed: {e}"}), 502

    return jsonify({
        "message": f"Found {len(ads)} ads for {query_type.value} '{query}'",
        "searchId": record.id,
        "count": len(ads),
        "ads": [serialize_ad(a) for a in ads[:RESPONSE_AD_LIMIT]],
    })


@ad_inspiration_bp.get("/ad-inspiration/recent")
@login_required
def recent():
    limit = max(1, min(parse_int(request.args.get("limit"), 10), 50))
    searches = ad_search.recent_searches(current_user.id, limit=limit)
    return jsonify({"searches": [serialize_search(s) for s in searches]})


@ad_inspiration_bp.get("/ad-inspiration/searches/<int:search_id>/ads")
@login_required
def search_ads(search_id):
    record = get_owned_or_404(AdSearchQuery, search_id)
    ads = ad_search.ads_for_search(record)
    return jsonify({"search": serialize_search(record), "ads": [serialize_ad(a) for a in ads]})


@ad_inspiration_bp.post("/ad-inspiration/ads/<int:ad_id>/analyze")
@login_required
def analyze_ad(ad_id):
    ad = db.session.get(CompetitorAd, ad_id)
    if not ad:
        return jsonify({"error": "not found"}), 404
    description = ad_search.generate_style_description(ad)
    return jsonify({"id": ad.id, "styleDescription": description})
