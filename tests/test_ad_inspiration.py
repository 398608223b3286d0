from unittest import mock

import pytest
import requests

from designstudio import ad_search, db
from designstudio.models import AdSearchQuery, SearchStatus

ITEMS = [
    {
        "title": "Acme Shoes - Run Faster",
        "snippet": "Lightweight running shoes.",
        "link": "https://acme.example.com/shoes",
        "displayLink": "acme.example.com",
        "cacheId": "abc123",
        "pagemap": {
            "cse_image": [{"src": "https://acme.example.com/big.jpg"}],
            "cse_thumbnail": [{"src": "https://acme.example.com/thumb.jpg"}],
        },
    },
    {
        "title": "Acme Boots",
        "snippet": "Waterproof boots.",
        "link": "https://acme.example.com/boots",
        "displayLink": "acme.example.com",
    },
]


@pytest.fixture
def google(app):
    app.config["GOOGLE_API_KEY"] = "g-key"
    app.config["GOOGLE_CSE_ID"] = "cse-id"
    response = mock.Mock()
    response.json.return_value = {"items": ITEMS}
    response.raise_for_status.return_value = None
    with mock.patch("designstudio.ad_search.requests.get", return_value=response) as get:
        yield get


def _search(client, **fields):
    body = {"query": "Acme", "searchType": "brand"}
    body.update(fields)
    return client.post("/api/ad-inspiration/search", json=body)


def test_search_validation(auth_client, google):
    assert _search(auth_client, query="").status_code == 400
    assert _search(auth_client, searchType="color").status_code == 400
    assert google.call_count == 0


def test_search_not_configured(auth_client):
    response = _search(auth_client)
    assert response.status_code == 503


def test_search_persists_ads(app, auth_client, google):
    response = _search(auth_client, region="gb")
    assert response.status_code == 200
    data = response.get_json()
    assert data["count"] == 2
    first = data["ads"][0]
    assert first["headline"] == "Acme Shoes - Run Faster"
    assert first["imageUrl"] == "https://acme.example.com/big.jpg"
    assert first["thumbnailUrl"] == "https://acme.example.com/thumb.jpg"
    assert first["snapshotUrl"] == "https://acme.example.com/shoes"

    params = google.call_args.kwargs["params"]
    assert params["q"] == "Acme"
    assert params["gl"] == "GB"
    assert params["num"] == 10

    with app.app_context():
        search = db.session.get(AdSearchQuery, data["searchId"])
        assert search.status == SearchStatus.completed
        assert search.results_count == 2


def test_duplicate_ads_not_stored_twice(auth_client, google):
    first = _search(auth_client).get_json()
    second = _search(auth_client).get_json()
    assert {a["id"] for a in first["ads"]} == {a["id"] for a in second["ads"]}


def test_industry_search_appends_companies(auth_client, google):
    data = _search(auth_client, query="coffee", searchType="industry").get_json()
    assert google.call_args.kwargs["params"]["q"] == "coffee companies"
    ads = auth_client.get(f"/api/ad-inspiration/searches/{data['searchId']}/ads").get_json()["ads"]
    assert len(ads) == 2
    assert all(a["industry"] == "coffee" for a in ads)


def test_failed_search_is_recorded(app, auth_client):
    app.config["GOOGLE_API_KEY"] = "g-key"
    app.config["GOOGLE_CSE_ID"] = "cse-id"
    with mock.patch("designstudio.ad_search.requests.get", side_effect=requests.ConnectionError("offline")):
        response = _search(auth_client)
    assert response.status_code == 502

    searches = auth_client.get("/api/ad-inspiration/recent").get_json()["searches"]
    assert searches[0]["status"] == "failed"
    assert "offline" in searches[0]["errorMessage"]


def test_recent_searches_limit(auth_client, google):
    for q in ("a", "b", "c"):
        _search(auth_client, query=q)
    searches = auth_client.get("/api/ad-inspiration/recent?limit=2").get_json()["searches"]
    assert [s["queryText"] for s in searches] == ["c", "b"]


def test_search_ads_belong_to_owner(auth_client, other_client, google):
    search_id = _search(auth_client).get_json()["searchId"]
    assert other_client.get(f"/api/ad-inspiration/searches/{search_id}/ads").status_code == 404


def test_analyze_ad(app, auth_client, google, monkeypatch):
    ad_id = _search(auth_client).get_json()["ads"][0]["id"]
    monkeypatch.setattr(ad_search.claude, "complete", lambda *a, **kw: " Clean, bold sans-serif layout. ")

    response = auth_client.post(f"/api/ad-inspiration/ads/{ad_id}/analyze")
    assert response.status_code == 200
    assert response.get_json()["styleDescription"] == "Clean, bold sans-serif layout."

    ads = auth_client.get("/api/ad-inspiration/recent").get_json()
    assert ads["searches"][0]["resultsCount"] == 2


def test_analyze_ad_without_image(auth_client, google, monkeypatch):
    data = _search(auth_client).get_json()
    no_image = next(a for a in data["ads"] if a["imageUrl"] is None)
    called = mock.Mock()
    monkeypatch.setattr(ad_search.claude, "complete", called)

    response = auth_client.post(f"/api/ad-inspiration/ads/{no_image['id']}/analyze")
    assert response.get_json()["styleDescription"] == "No image available for style analysis"
    called.assert_not_called()


def test_analyze_unknown_ad(auth_client):
    assert auth_client.post("/api/ad-inspiration/ads/999/analyze").status_code == 404


def test_same_search_by_two_users_lists_each_users_ads(auth_client, other_client, google):
    mine = _search(auth_client).get_json()
    theirs = _search(other_client).get_json()
    assert theirs["count"] == 2
    assert {a["id"] for a in mine["ads"]}.isdisjoint(a["id"] for a in theirs["ads"])

    listed = other_client.get(f"/api/ad-inspiration/searches/{theirs['searchId']}/ads").get_json()["ads"]
    assert {a["id"] for a in listed} == {a["id"] for a in theirs["ads"]}


def test_brand_and_industry_searches_keep_separate_ads(auth_client, google):
    _search(auth_client, query="Acme", searchType="brand")
    industry = _search(auth_client, query="Acme", searchType="industry").get_json()
    listed = auth_client.get(f"/api/ad-inspiration/searches/{industry['searchId']}/ads").get_json()["ads"]
    assert len(listed) == 2
    assert all(a["industry"] == "Acme" for a in listed)
