import os


def test_server_running(client):
    response = client.get("/api/test")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "message": "Server is running correctly"}


def test_aspect_ratio_presets(client):
    data = client.get("/api/aspect-ratios").get_json()
    presets = {p["id"]: p for p in data["aspectRatios"]}
    assert presets["stories"]["width"] == 1080
    assert presets["stories"]["height"] == 1920
    assert len(presets) == 12
    assert data["default"] == {"width": 800, "height": 1200}


def test_unknown_api_route_is_json_404(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert "error" in response.get_json()


def test_media_files_are_served(app, client):
    folder = app.config["MEDIA_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    with open(os.path.join(folder, "hello.jpg"), "wb") as fh:
        fh.write(b"\xff\xd8\xff")
    response = client.get("/media/hello.jpg")
    assert response.status_code == 200
    assert response.data == b"\xff\xd8\xff"


def test_system_design_config_seeded(app):
    from designstudio import db
    from designstudio.models import DesignConfig

    with app.app_context():
        configs = db.session.execute(db.select(DesignConfig)).scalars().all()
    assert len(configs) == 1
    assert configs[0].is_system
    assert configs[0].credits_per_design == 1
