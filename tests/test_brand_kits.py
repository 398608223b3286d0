def _create(client, **fields):
    body = {"name": "Acme", "primary_color": "#112233"}
    body.update(fields)
    return client.post("/api/brand-kits", json=body)


def test_create_and_list(auth_client):
    response = _create(auth_client, heading_font="Montserrat", brand_voice="Playful")
    assert response.status_code == 201
    kit = response.get_json()
    assert kit["name"] == "Acme"
    assert kit["primary_color"] == "#112233"
    assert kit["heading_font"] == "Montserrat"
    assert kit["is_active"] is False

    kits = auth_client.get("/api/brand-kits").get_json()["brandKits"]
    assert [k["id"] for k in kits] == [kit["id"]]


def test_name_is_required(auth_client):
    assert _create(auth_client, name="").status_code == 400
    assert _create(auth_client, name="   ").status_code == 400
    response = auth_client.post("/api/brand-kits", json={"primary_color": "#fff"})
    assert response.status_code == 400
    assert "name" in response.get_json()["errors"]


def test_invalid_color_rejected(auth_client):
    response = _create(auth_client, secondary_color="blue")
    assert response.status_code == 400
    assert "secondary_color" in response.get_json()["errors"]
    assert _create(auth_client, accent_color="#abc").status_code == 201


def test_update_round_trip(auth_client):
    kit_id = _create(auth_client).get_json()["id"]
    response = auth_client.put(f"/api/brand-kits/{kit_id}", json={"name": "Acme 2", "body_font": "Inter"})
    assert response.status_code == 200
    kit = response.get_json()
    assert kit["name"] == "Acme 2"
    assert kit["body_font"] == "Inter"
    assert kit["primary_color"] == "#112233"

    assert auth_client.put(f"/api/brand-kits/{kit_id}", json={"name": ""}).status_code == 400


def test_only_one_active_kit(auth_client):
    assert auth_client.get("/api/brand-kits/active").status_code == 404

    first = _create(auth_client, name="First", is_active=True).get_json()
    second = _create(auth_client, name="Second", is_active=True).get_json()

    active = auth_client.get("/api/brand-kits/active").get_json()["brandKit"]
    assert active["id"] == second["id"]

    auth_client.put(f"/api/brand-kits/{first['id']}", json={"is_active": True})
    kits = {k["id"]: k for k in auth_client.get("/api/brand-kits").get_json()["brandKits"]}
    assert kits[first["id"]]["is_active"] is True
    assert kits[second["id"]]["is_active"] is False

    auth_client.post("/api/brand-kits/deactivate")
    assert auth_client.get("/api/brand-kits/active").status_code == 404


def test_delete(auth_client):
    kit_id = _create(auth_client).get_json()["id"]
    assert auth_client.delete(f"/api/brand-kits/{kit_id}").status_code == 204
    assert auth_client.get("/api/brand-kits").get_json()["brandKits"] == []
    assert auth_client.delete(f"/api/brand-kits/{kit_id}").status_code == 404


def test_other_users_kits_are_hidden(auth_client, other_client):
    kit_id = _create(auth_client).get_json()["id"]
    assert other_client.get("/api/brand-kits").get_json()["brandKits"] == []
    assert other_client.put(f"/api/brand-kits/{kit_id}", json={"name": "Mine"}).status_code == 404
    assert other_client.delete(f"/api/brand-kits/{kit_id}").status_code == 404
