import io
from unittest import mock

import pytest

from designstudio.errors import DesignError, QuotaExceededError
from designstudio.rendering import RenderedDesign
from designstudio.routes import generate


class FakeRenderer:
    """Stands in for render_design; outcomes are consumed in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, options):
        self.calls.append(options)
        outcome = self.outcomes.pop(0) if self.outcomes else "ok"
        if outcome == "ok":
            return RenderedDesign(image=b"jpeg-bytes")
        if isinstance(outcome, DesignError):
            return RenderedDesign(image=b"error-image", fallback=True, error=outcome)
        raise outcome


@pytest.fixture
def renderer(monkeypatch):
    def install(*outcomes):
        fake = FakeRenderer(outcomes)
        monkeypatch.setattr(generate, "render_design", fake)
        return fake
    return install


def _balance(client):
    return client.get("/api/credits").get_json()["balance"]


def test_prompt_required(auth_client, renderer):
    fake = renderer()
    response = auth_client.post("/api/generate-ai", json={"prompt": "  "})
    assert response.status_code == 400
    assert fake.calls == []


def test_generates_four_by_default(auth_client, renderer):
    fake = renderer()
    response = auth_client.post("/api/generate-ai", json={"prompt": "Bakery flyer", "aspectRatio": "stories"})
    assert response.status_code == 200
    data = response.get_json()
    assert len(data["designs"]) == 4
    assert data["designs"][0]["imageBase64"].startswith("data:image/jpeg;base64,")
    assert data["designs"][0]["style"] == "with a bold, high-contrast style"
    assert data["credits"] == {"balance": 6, "used": 4}
    assert [o.prompt for o in fake.calls][1] == "Bakery flyer with a minimal, elegant style"
    assert all(o.aspect_ratio == "stories" for o in fake.calls)


@pytest.mark.parametrize("count,expected", [(0, 1), (2, 2), (9, 4), ("x", 4)])
def test_design_count_clamped(auth_client, renderer, count, expected):
    fake = renderer()
    auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": count})
    assert len(fake.calls) == expected


def test_insufficient_credits(auth_client, renderer):
    renderer()
    auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": 4})
    auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": 4})
    assert _balance(auth_client) == 2

    response = auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": 3})
    assert response.status_code == 403
    assert response.get_json() == {
        "error": "Insufficient credits",
        "creditsRequired": 3,
        "creditsAvailable": 2,
        "designCount": 3,
    }


def test_fallback_designs_are_not_counted_or_charged(auth_client, renderer):
    renderer("ok", DesignError("bad markup"), "ok", DesignError("bad markup"))
    data = auth_client.post("/api/generate-ai", json={"prompt": "p"}).get_json()
    assert len(data["designs"]) == 2
    assert data["credits"]["used"] == 2
    assert _balance(auth_client) == 8


def test_quota_error_stops_generation(auth_client, renderer):
    fake = renderer(QuotaExceededError())
    response = auth_client.post("/api/generate-ai", json={"prompt": "p"})
    assert response.status_code == 429
    assert response.get_json()["quotaExceeded"] is True
    assert len(fake.calls) == 1
    assert _balance(auth_client) == 10


def test_quota_after_success_keeps_partial_result(auth_client, renderer):
    fake = renderer("ok", QuotaExceededError())
    data = auth_client.post("/api/generate-ai", json={"prompt": "p"}).get_json()
    assert len(data["designs"]) == 1
    assert len(fake.calls) == 2
    assert _balance(auth_client) == 9


def test_all_failed_returns_classified_status(auth_client, renderer):
    renderer(DesignError("nope"), DesignError("nope"))
    response = auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": 2})
    assert response.status_code == 502
    assert response.get_json()["error"] == "nope"


def test_unknown_config_is_404(auth_client, renderer):
    renderer()
    response = auth_client.post("/api/generate-ai", json={"prompt": "p", "configId": 999})
    assert response.status_code == 404


def test_user_config_sets_price(auth_client, renderer):
    renderer()
    config = auth_client.post("/api/design-configs", json={"name": "Premium", "credits_per_design": 2}).get_json()
    data = auth_client.post(
        "/api/generate-ai", json={"prompt": "p", "designCount": 2, "configId": config["id"]}
    ).get_json()
    assert data["credits"] == {"balance": 6, "used": 4}


def test_active_brand_kit_and_template_used(auth_client, renderer):
    fake = renderer()
    auth_client.post("/api/brand-kits", json={"name": "Brew", "primary_color": "#123456", "is_active": True})
    auth_client.post(
        "/api/generate-ai",
        json={"prompt": "p", "designCount": 1, "template": '{"name": "Retro", "neonEffects": true}'},
    )
    options = fake.calls[0]
    assert options.brand_kit["name"] == "Brew"
    assert options.template.name == "Retro"
    assert options.template.neon_effects is True


def test_multipart_images(auth_client, renderer):
    fake = renderer()
    response = auth_client.post(
        "/api/generate-ai",
        data={
            "prompt": "p",
            "designCount": "1",
            "backgroundImage": (io.BytesIO(b"BAC"), "bg.jpg", "image/jpeg"),
            "logo": (io.BytesIO(b"LOG"), "logo.png", "image/png"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    assert fake.calls[0].background_image_b64 == "QkFD"
    assert fake.calls[0].logo_b64 == "TE9H"


def test_inspiration_styles(app, auth_client, renderer):
    from designstudio import db
    from designstudio.models import CompetitorAd

    with app.app_context():
        ad = CompetitorAd(brand="Rival", headline="h", style_description="Bold red type")
        db.session.add(ad)
        db.session.commit()
        ad_id = ad.id

    fake = renderer()
    auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": 1, "inspirationAdIds": [ad_id]})
    assert fake.calls[0].inspiration_styles == ["Bold red type"]


def _adburst_images(count=3, mimetype="image/jpeg"):
    return {
        f"image{i}": (io.BytesIO(b"img%d" % i), f"p{i}.jpg", mimetype)
        for i in range(1, count + 1)
    }


def test_adburst(auth_client, renderer, monkeypatch):
    fake = renderer()
    monkeypatch.setattr(generate.adburst.claude, "complete", lambda *a, **kw: "  Meet Zing. Drink it now!  ")
    response = auth_client.post(
        "/api/adburst",
        data={"productName": "Zing", **_adburst_images()},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["script"] == "Meet Zing. Drink it now!"
    assert len(data["designs"]) == 3
    assert all(o.aspect_ratio == "post" for o in fake.calls)
    assert "Meet Zing" in fake.calls[0].prompt
    assert _balance(auth_client) == 7


def test_adburst_validation(auth_client, renderer):
    renderer()
    response = auth_client.post(
        "/api/adburst", data={**_adburst_images()}, content_type="multipart/form-data"
    )
    assert response.status_code == 400

    response = auth_client.post(
        "/api/adburst", data={"productName": "Zing", **_adburst_images(2)}, content_type="multipart/form-data"
    )
    assert response.status_code == 400

    response = auth_client.post(
        "/api/adburst",
        data={"productName": "Zing", **_adburst_images(mimetype="text/plain")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400


def test_adburst_insufficient_credits(auth_client, renderer, monkeypatch):
    fake = renderer()
    script = mock.Mock(return_value="script")
    monkeypatch.setattr(generate.adburst.claude, "complete", script)
    auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": 4})
    auth_client.post("/api/generate-ai", json={"prompt": "p", "designCount": 4})
    calls_before = len(fake.calls)

    response = auth_client.post(
        "/api/adburst",
        data={"productName": "Zing", **_adburst_images()},
        content_type="multipart/form-data",
    )
    assert response.status_code == 403
    assert response.get_json()["creditsRequired"] == 3
    assert response.get_json()["creditsAvailable"] == 2
    script.assert_not_called()
    assert len(fake.calls) == calls_before
