import pytest

from designstudio import create_app, db


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "MEDIA_FOLDER": str(tmp_path / "media"),
        "RENDER_TEMP_DIR": str(tmp_path / "temp"),
        "ANTHROPIC_API_KEY": "test-key",
        "GOOGLE_API_KEY": None,
        "GOOGLE_CSE_ID": None,
        "STRIPE_SECRET_KEY": None,
        "STRIPE_WEBHOOK_SECRET": None,
        "STRIPE_PRICE_ID_STARTER": None,
        "STRIPE_PRICE_ID_PRO": None,
        "SOCIAL_PUBLISH_URL": None,
        "PUBLIC_BASE_URL": None,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, username="alice", password="secret123"):
    return client.post("/api/auth/register", json={"username": username, "password": password})


def login(client, username="alice", password="secret123"):
    return client.post("/api/auth/login", json={"username": username, "password": password})


@pytest.fixture
def auth_client(client):
    assert register(client).status_code == 201
    assert login(client).status_code == 200
    return client


@pytest.fixture
def other_client(app):
    """A second logged-in user with its own cookie jar."""
    c = app.test_client()
    register(c, "bob", "hunter22")
    login(c, "bob", "hunter22")
    return c

