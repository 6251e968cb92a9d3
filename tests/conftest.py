import pytest
from fastapi.testclient import TestClient

import core.db.base as db_base
from app.security import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, reset_rate_limits
from core.database import create_user, init_db

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Sup3r-secret"


@pytest.fixture(autouse=True)
def _fresh_db(tmp_path, monkeypatch):
    """Every test gets its own SQLite file and an empty rate limiter."""
    monkeypatch.setattr(db_base, "database_url", None)
    monkeypatch.setattr(db_base, "database_path", tmp_path / "test.db")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    monkeypatch.delenv("TRUST_PROXY_HEADERS", raising=False)
    init_db()
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def client():
    import app.api as api_module

    return TestClient(api_module.app)


@pytest.fixture
def admin_user():
    user_id = create_user(ADMIN_EMAIL, ADMIN_PASSWORD, role="admin", display_name="Site Owner")
    return {"id": user_id, "email": ADMIN_EMAIL}


@pytest.fixture
def admin_client(client, admin_user):
    """A client holding an admin session plus the matching CSRF header."""
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    client.headers[CSRF_HEADER_NAME] = client.cookies.get(CSRF_COOKIE_NAME)
    return client
