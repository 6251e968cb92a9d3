import types

from app import security
from app.auth_utils import SESSION_COOKIE_NAME, require_admin
from app.routes import auth
from core.database import create_user, get_session

from tests.conftest import ADMIN_EMAIL, ADMIN_PASSWORD


def test_login_sets_session_and_csrf_cookies(client, admin_user):
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == ADMIN_EMAIL
    assert "password_hash" not in body["data"]["user"]
    assert resp.headers["Cache-Control"] == "no-store"

    token = client.cookies.get(SESSION_COOKIE_NAME)
    assert token
    assert get_session(token)["user_id"] == admin_user["id"]
    assert client.cookies.get(security.CSRF_COOKIE_NAME)


def test_login_rejects_bad_password(client, admin_user):
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Invalid email or password"
    assert "Attempts left" in body["message"]


def test_login_requires_json_body(client):
    resp = client.post("/api/auth/login", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400

    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL})
    assert resp.status_code == 400


def test_login_rate_limit_after_five_attempts(client, admin_user):
    for _ in range(5):
        resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
        assert resp.status_code == 401
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "60"


def test_login_rate_limit_is_per_client_ip(client, admin_user, monkeypatch):
    calls = {"keys": []}

    def fake_allow_request_with_remaining(key, limit=5, window_seconds=60):
        calls["keys"].append(key)
        return False, 0

    monkeypatch.setenv("TRUST_PROXY_HEADERS", "1")
    monkeypatch.setattr(auth, "allow_request_with_remaining", fake_allow_request_with_remaining)
    resp = client.post(
        "/api/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )
    assert resp.status_code == 429
    assert calls["keys"] == ["login:203.0.113.9"]


def test_me_and_logout(admin_client):
    resp = admin_client.get("/api/auth/me")
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["role"] == "admin"

    token = admin_client.cookies.get(SESSION_COOKIE_NAME)
    resp = admin_client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert get_session(token) is None

    admin_client.cookies.clear()
    assert admin_client.get("/api/auth/me").status_code == 401


def test_inactive_user_cannot_log_in(client):
    from core.database import execute

    user_id = create_user("old@example.com", "Passw0rd!", role="admin")
    execute("UPDATE users SET active = 0 WHERE id = ?", (user_id,))
    resp = client.post("/api/auth/login", json={"email": "old@example.com", "password": "Passw0rd!"})
    assert resp.status_code == 401


def test_require_admin_rejects_missing_session(monkeypatch):
    from app import auth_utils

    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: (None, None))
    req = types.SimpleNamespace(method="POST", cookies={}, headers={})
    user, resp = require_admin(req)
    assert user is None
    assert resp.status_code == 401


def test_require_admin_rejects_non_admin(monkeypatch):
    from app import auth_utils

    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 7, "role": "editor"}, "tok"))
    req = types.SimpleNamespace(method="GET", cookies={}, headers={}, url=types.SimpleNamespace(path="/api/admin/blog"))
    user, resp = require_admin(req)
    assert user is None
    assert resp.status_code == 403


def test_require_admin_checks_csrf_on_mutations(monkeypatch):
    from app import auth_utils

    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 1, "role": "admin"}, "tok"))
    req = types.SimpleNamespace(
        method="POST",
        cookies={security.CSRF_COOKIE_NAME: "cookie-token"},
        headers={security.CSRF_HEADER_NAME: "other-token"},
    )
    user, resp = require_admin(req)
    assert user is None
    assert resp.status_code == 403

    req.headers = {security.CSRF_HEADER_NAME: "cookie-token"}
    user, resp = require_admin(req)
    assert resp is None
    assert user["id"] == 1


def test_admin_route_without_csrf_header_is_forbidden(admin_client):
    admin_client.headers.pop(security.CSRF_HEADER_NAME)
    resp = admin_client.post("/api/admin/blog", json={"title": "Nope", "content": "body"})
    assert resp.status_code == 403
    assert resp.json()["error"] == "Invalid or missing CSRF token"
