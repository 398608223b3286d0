from conftest import login, register


def test_register_login_and_current_user(client):
    response = register(client)
    assert response.status_code == 201
    assert response.get_json()["username"] == "alice"

    assert client.get("/api/auth/user").status_code == 401
    assert login(client).status_code == 200

    user = client.get("/api/auth/user").get_json()
    assert user["username"] == "alice"
    assert user["credits_balance"] == 10


def test_new_user_gets_initial_transaction(auth_client):
    data = auth_client.get("/api/credits").get_json()
    assert data["balance"] == 10
    assert [t["transaction_type"] for t in data["history"]] == ["initial"]


def test_register_rejects_short_password(client):
    response = register(client, password="abc")
    assert response.status_code == 400
    assert "password" in response.get_json()["errors"]


def test_register_rejects_duplicate_username(client):
    register(client)
    response = register(client)
    assert response.status_code == 400


def test_login_with_wrong_password(client):
    register(client)
    assert login(client, password="wrong-password").status_code == 401


def test_logout_clears_session(auth_client):
    assert auth_client.post("/api/auth/logout").status_code == 200
    assert auth_client.get("/api/auth/user").status_code == 401


def test_protected_routes_need_login(client):
    for path in ("/api/brand-kits", "/api/creations", "/api/credits", "/api/social-posts"):
        response = client.get(path)
        assert response.status_code == 401, path
        assert response.get_json() == {"error": "Unauthorized"}
