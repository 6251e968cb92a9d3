from app.routes import health


def test_health_reports_database(client):
    body = client.get("/api/health").json()
    assert body["success"] is True
    assert body["database"] == "up"


def test_database_health_details(client):
    resp = client.get("/api/health/database")
    assert resp.status_code == 200
    assert resp.json()["dialect"] == "sqlite"
    assert resp.headers["Cache-Control"] == "no-cache"


def test_database_down(client, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("connection refused")

    monkeypatch.setattr(health, "fetch_one", broken)
    assert client.get("/api/health").json()["database"] == "down"
    resp = client.get("/api/health/database")
    assert resp.status_code == 503
    assert resp.json()["error"] == "Database unavailable"
