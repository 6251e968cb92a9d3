import types
from datetime import datetime, timedelta

from app import security
from core.database import (
    create_session,
    create_user,
    delete_expired_sessions,
    execute,
    get_session,
    touch_session,
)


def test_session_round_trip():
    user_id = create_user("a@example.com", "Passw0rd!")
    token = create_session(user_id)
    session = get_session(token)
    assert session["user_id"] == user_id
    assert get_session("missing") is None
    assert get_session("") is None


def test_expired_session_is_deleted_on_lookup():
    user_id = create_user("a@example.com", "Passw0rd!")
    token = create_session(user_id)
    past = (datetime.utcnow() - timedelta(minutes=5)).isoformat()
    execute("UPDATE sessions SET expires_at = ? WHERE id = ?", (past, token))

    assert get_session(token) is None
    assert execute("DELETE FROM sessions WHERE id = ?", (token,)) == 0


def test_touch_session_extends_expiry():
    user_id = create_user("a@example.com", "Passw0rd!")
    token = create_session(user_id)
    soon = (datetime.utcnow() + timedelta(minutes=1)).isoformat()
    execute("UPDATE sessions SET expires_at = ? WHERE id = ?", (soon, token))

    touch_session(token)
    expires_at = datetime.fromisoformat(get_session(token)["expires_at"])
    assert expires_at > datetime.utcnow() + timedelta(minutes=30)


def test_delete_expired_sessions_counts_rows():
    user_id = create_user("a@example.com", "Passw0rd!")
    keep = create_session(user_id)
    stale = create_session(user_id)
    past = (datetime.utcnow() - timedelta(hours=2)).isoformat()
    execute("UPDATE sessions SET expires_at = ? WHERE id = ?", (past, stale))

    assert delete_expired_sessions() == 1
    assert get_session(keep) is not None


def test_rate_limiter_sliding_window(monkeypatch):
    now = {"t": 1000.0}
    monkeypatch.setattr(security.time, "time", lambda: now["t"])

    results = [security.allow_request_with_remaining("k", limit=3, window_seconds=60) for _ in range(4)]
    assert results == [(True, 2), (True, 1), (True, 0), (False, 0)]

    # other keys are independent
    assert security.allow_request("other", limit=3, window_seconds=60)

    now["t"] += 61
    assert security.allow_request_with_remaining("k", limit=3, window_seconds=60) == (True, 2)


def test_validate_csrf_prefers_argument_then_header():
    class Req:
        cookies = {security.CSRF_COOKIE_NAME: "abc"}
        headers = {security.CSRF_HEADER_NAME: "abc"}

    assert security.validate_csrf(Req())
    assert security.validate_csrf(Req(), "abc")
    assert not security.validate_csrf(Req(), "xyz")

    Req.cookies = {}
    assert not security.validate_csrf(Req(), "abc")


def test_rate_limit_state_resets():
    for _ in range(5):
        security.allow_request("login:x")
    assert not security.allow_request("login:x")
    security.reset_rate_limits()
    assert security.allow_request("login:x")


def test_rotating_forwarded_for_does_not_dodge_login_limit(client, admin_user):
    codes = [
        client.post(
            "/api/auth/login",
            json={"email": admin_user["email"], "password": "wrong"},
            headers={"X-Forwarded-For": f"10.0.0.{i}"},
        ).status_code
        for i in range(7)
    ]
    assert codes[:5] == [401] * 5
    assert codes[5:] == [429, 429]


def test_client_ip_only_trusts_forwarded_for_when_enabled(monkeypatch):
    class Req:
        headers = {"x-forwarded-for": "203.0.113.9, 10.0.0.1"}
        client = types.SimpleNamespace(host="127.0.0.1")

    assert security.client_ip(Req()) == "127.0.0.1"
    monkeypatch.setenv("TRUST_PROXY_HEADERS", "true")
    assert security.client_ip(Req()) == "203.0.113.9"
    assert security.client_ip(None) == "unknown"


def test_idle_rate_limit_keys_are_forgotten(monkeypatch):
    now = {"t": 1000.0}
    monkeypatch.setattr(security.time, "time", lambda: now["t"])
    security.allow_request("login:old")
    now["t"] += 30
    security.allow_request("login:recent")
    now["t"] += 45

    assert security.prune_rate_limits(window_seconds=60) == 1
    assert set(security._rate_state) == {"login:recent"}


def test_rate_state_is_swept_when_large(monkeypatch):
    now = {"t": 1000.0}
    monkeypatch.setattr(security.time, "time", lambda: now["t"])
    monkeypatch.setattr(security, "RATE_STATE_SWEEP_SIZE", 10)
    for i in range(10):
        security.allow_request(f"login:10.0.0.{i}")
    now["t"] += 120

    security.allow_request("login:fresh")
    assert set(security._rate_state) == {"login:fresh"}
