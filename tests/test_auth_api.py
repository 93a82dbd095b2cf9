"""HTTP-level tests for the /api/v1/users auth endpoints."""

from datetime import datetime, timedelta, timezone

import pytest

from api import create_app
from api.config import DEV_JWT_SECRET
from models import storage
from models.user import User
from utils.decorators import RequestCredentials, authenticate
from utils.tokens import ConfigurationError

from conftest import (
    LOGIN_URL,
    LOGOUT_URL,
    PROTECTED_URL,
    REFRESH_URL,
    bearer,
    login,
    make_user,
    stored_refresh_token,
)


def _set_cookies(response):
    return {c.split("=", 1)[0]: c for c in response.headers.getlist("Set-Cookie")}


class TestLogin:

    def test_login_returns_tokens_and_cookies(self, app, client, alice):
        response = login(client)
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["user"]["id"] == alice
        assert data["user"]["username"] == "alice"
        assert "password_hash" not in data["user"]
        assert "current_refresh_token" not in data["user"]

        cookies = _set_cookies(response)
        assert cookies["accessToken"].startswith(f"accessToken={data['accessToken']};")
        assert cookies["refreshToken"].startswith(f"refreshToken={data['refreshToken']};")
        assert "HttpOnly" in cookies["accessToken"]
        assert stored_refresh_token(app, alice) == data["refreshToken"]

    def test_access_token_subject_is_the_user(self, app, client, alice):
        token = login(client).get_json()["data"]["accessToken"]
        with app.app_context():
            claims = app.extensions["token_issuer"].verify(token, "access").value
        assert claims.subject == alice

    def test_login_by_email(self, client, alice):
        response = client.post(LOGIN_URL, json={"email": "Alice@Example.com", "password": "correct-pw"})
        assert response.status_code == 200

    def test_missing_fields(self, client, alice):
        assert client.post(LOGIN_URL, json={"password": "correct-pw"}).status_code == 400
        assert client.post(LOGIN_URL, json={"username": "alice"}).status_code == 400
        assert client.post(LOGIN_URL).status_code == 400

    def test_unknown_user(self, client, alice):
        response = login(client, username="mallory")
        assert response.status_code == 404
        assert response.get_json()["error"] == "NOT_FOUND"

    def test_wrong_password(self, app, client, alice):
        response = login(client, password="wrong-pw")
        assert response.status_code == 401
        assert response.get_json() == {"error": "UNAUTHORIZED", "message": "Invalid credentials", "status": 401}
        assert stored_refresh_token(app, alice) is None

    def test_second_login_replaces_session(self, app, bare_client, alice):
        first = login(bare_client).get_json()["data"]["refreshToken"]
        second = login(bare_client).get_json()["data"]["refreshToken"]
        assert stored_refresh_token(app, alice) == second
        assert bare_client.post(REFRESH_URL, json={"refreshToken": first}).status_code == 401

    def test_secure_samesite_cookies_by_default(self, tmp_path):
        storage.dispose()
        app = create_app("testing", {
            "DATABASE_URL": f"sqlite:///{tmp_path / 'secure.db'}",
            "AUTH_COOKIE_SECURE": True,
        })
        make_user(app, "alice")
        cookies = _set_cookies(login(app.test_client(use_cookies=False)))
        for name in ("accessToken", "refreshToken"):
            assert "Secure" in cookies[name]
            assert "HttpOnly" in cookies[name]
            assert "SameSite=Strict" in cookies[name]


class TestAccessMiddleware:

    def test_bearer_header(self, bare_client, alice):
        token = login(bare_client).get_json()["data"]["accessToken"]
        response = bare_client.get(PROTECTED_URL, headers=bearer(token))
        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == alice

    def test_cookie(self, client, alice):
        login(client)
        assert client.get(PROTECTED_URL).status_code == 200

    def test_missing_token(self, bare_client):
        response = bare_client.get(PROTECTED_URL)
        assert response.status_code == 401
        assert response.get_json()["error"] == "UNAUTHORIZED"

    def test_refresh_token_is_not_an_access_token(self, bare_client, alice):
        token = login(bare_client).get_json()["data"]["refreshToken"]
        assert bare_client.get(PROTECTED_URL, headers=bearer(token)).status_code == 401

    def test_tampered_signature(self, bare_client, alice, bob):
        alice_token = login(bare_client).get_json()["data"]["accessToken"]
        bob_token = login(bare_client, username="bob").get_json()["data"]["accessToken"]
        header, _, signature = alice_token.split(".")
        forged = ".".join([header, bob_token.split(".")[1], signature])
        assert bare_client.get(PROTECTED_URL, headers=bearer(forged)).status_code == 401

    def test_expired_token(self, app, bare_client, alice):
        with app.app_context():
            issuer = app.extensions["token_issuer"]
            stale = issuer.issue(alice, now=datetime.now(timezone.utc) - timedelta(hours=1)).access_token
        assert bare_client.get(PROTECTED_URL, headers=bearer(stale)).status_code == 401

    def test_no_database_read(self, app, bare_client, alice, monkeypatch):
        token = login(bare_client).get_json()["data"]["accessToken"]

        def no_db(*args, **kwargs):
            raise AssertionError("access check must not touch the database")

        monkeypatch.setattr(storage, "get_session", no_db)
        monkeypatch.setattr(storage, "get", no_db)
        with app.app_context():
            issuer = app.extensions["token_issuer"]
            result = authenticate(RequestCredentials(access_token=token), issuer)
        assert result.ok
        assert result.value.principal_id == alice

    def test_deleted_user_token_still_verifies(self, app, bare_client, alice):
        token = login(bare_client).get_json()["data"]["accessToken"]
        with app.app_context():
            storage.delete(storage.get(User, alice))
            storage.save()
            result = authenticate(RequestCredentials(access_token=token), app.extensions["token_issuer"])
        assert result.ok
        # handlers that load the user report it missing
        assert bare_client.get(PROTECTED_URL, headers=bearer(token)).status_code == 404

    def test_failures_share_one_message(self, bare_client, alice):
        missing = bare_client.get(PROTECTED_URL).get_json()
        garbage = bare_client.get(PROTECTED_URL, headers=bearer("x.y.z")).get_json()
        assert missing == garbage


class TestRefreshEndpoint:

    def test_refresh_from_body(self, app, bare_client, alice):
        r1 = login(bare_client).get_json()["data"]["refreshToken"]
        response = bare_client.post(REFRESH_URL, json={"refreshToken": r1})
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["refreshToken"] != r1
        assert stored_refresh_token(app, alice) == data["refreshToken"]
        assert set(_set_cookies(response)) == {"accessToken", "refreshToken"}
        assert bare_client.get(PROTECTED_URL, headers=bearer(data["accessToken"])).status_code == 200

    def test_refresh_from_cookie(self, client, alice):
        login(client)
        first = client.get_cookie("refreshToken").value
        assert client.post(REFRESH_URL).status_code == 200
        assert client.get_cookie("refreshToken").value != first

    def test_reused_token_rejected(self, bare_client, alice):
        r1 = login(bare_client).get_json()["data"]["refreshToken"]
        assert bare_client.post(REFRESH_URL, json={"refreshToken": r1}).status_code == 200
        response = bare_client.post(REFRESH_URL, json={"refreshToken": r1})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid or expired refresh token"

    def test_expired_token(self, app, bare_client, alice):
        with app.app_context():
            issuer = app.extensions["token_issuer"]
            stale = issuer.issue(alice, now=datetime.now(timezone.utc) - timedelta(days=11)).refresh_token
            app.extensions["session_store"].set(alice, stale)
        response = bare_client.post(REFRESH_URL, json={"refreshToken": stale})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid or expired refresh token"

    def test_unencodable_token_in_body(self, bare_client, alice):
        login(bare_client)
        response = bare_client.post(REFRESH_URL, json={"refreshToken": "\udcff"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "UNAUTHORIZED"

    def test_missing_token(self, bare_client):
        assert bare_client.post(REFRESH_URL, json={}).status_code == 401
        assert bare_client.post(REFRESH_URL).status_code == 401


class TestLogout:

    def test_logout_clears_cookies_and_session(self, app, client, alice):
        login(client)
        response = client.post(LOGOUT_URL)
        assert response.status_code == 200
        cookies = _set_cookies(response)
        for name in ("accessToken", "refreshToken"):
            assert cookies[name].startswith(f"{name}=;")
            assert "Max-Age=0" in cookies[name]
        assert stored_refresh_token(app, alice) is None

    def test_logout_requires_auth(self, bare_client):
        assert bare_client.post(LOGOUT_URL).status_code == 401

    def test_logout_is_idempotent(self, bare_client, alice):
        token = login(bare_client).get_json()["data"]["accessToken"]
        assert bare_client.post(LOGOUT_URL, headers=bearer(token)).status_code == 200
        assert bare_client.post(LOGOUT_URL, headers=bearer(token)).status_code == 200


def test_end_to_end_session(bare_client, alice):
    response = bare_client.post(LOGIN_URL, json={"username": "alice", "password": "correct-pw"})
    assert response.status_code == 200
    tokens = response.get_json()["data"]
    assert set(_set_cookies(response)) == {"accessToken", "refreshToken"}

    assert bare_client.get(PROTECTED_URL, headers=bearer(tokens["accessToken"])).status_code == 200
    assert bare_client.post(LOGOUT_URL, headers=bearer(tokens["accessToken"])).status_code == 200

    # access tokens stay valid until they expire; the session itself is gone
    assert bare_client.get(PROTECTED_URL, headers=bearer(tokens["accessToken"])).status_code == 200
    assert bare_client.post(REFRESH_URL, json={"refreshToken": tokens["refreshToken"]}).status_code == 401


class TestAppConfiguration:

    def test_missing_signing_key_stops_startup(self, tmp_path):
        storage.dispose()
        with pytest.raises(ConfigurationError):
            create_app("testing", {"DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}", "JWT_SECRET": ""})

    def test_production_refuses_dev_secret(self, tmp_path):
        storage.dispose()
        with pytest.raises(ConfigurationError):
            create_app("production", {
                "DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}",
                "JWT_SECRET": DEV_JWT_SECRET,
                "JWT_ACCESS_SECRET": None,
                "JWT_REFRESH_SECRET": None,
            })

    def test_unexpected_error_hides_details(self, tmp_path):
        storage.dispose()
        app = create_app("testing", {"DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}"})

        @app.get("/boom")
        def boom():
            raise RuntimeError("signing key is hunter2")

        response = app.test_client().get("/boom")
        assert response.status_code == 500
        assert response.get_json() == {
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "status": 500,
        }
