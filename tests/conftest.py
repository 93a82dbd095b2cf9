import pytest

from api import create_app
from models import storage
from models.user import User
from utils.security import hash_password

LOGIN_URL = "/api/v1/users/login"
LOGOUT_URL = "/api/v1/users/logout"
REFRESH_URL = "/api/v1/users/refresh-token"
PROTECTED_URL = "/api/v1/users/current-user"


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", {"DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}"})
    yield app
    storage.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def bare_client(app):
    """Client without a cookie jar; credentials go in headers/body explicitly."""
    return app.test_client(use_cookies=False)


def make_user(app, username, password="correct-pw", email=None, full_name=None):
    with app.app_context():
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            full_name=full_name or username.title(),
            password_hash=hash_password(password),
        )
        user.save()
        return user.id


@pytest.fixture
def alice(app):
    return make_user(app, "alice")


@pytest.fixture
def bob(app):
    return make_user(app, "bob")


def login(client, username="alice", password="correct-pw"):
    return client.post(LOGIN_URL, json={"username": username, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def stored_refresh_token(app, user_id):
    with app.app_context():
        return app.extensions["session_store"].read(user_id)
