import httpx
from fastapi.testclient import TestClient

import app.api as api_module
from core.database import (
    create_airport,
    create_flight,
    create_post,
    execute,
    fetch_count,
    get_airport_by_iata,
    get_post_by_id,
    get_user_by_email,
    verify_password,
)
from scripts import (
    check_flight_references,
    create_admin_user,
    fix_blog_slugs,
    publish_drafts,
    seed_database,
    validate_caching,
)


def test_publish_drafts(capsys):
    draft = create_post({"title": "Pending", "content": "Text.", "status": "draft"})

    assert publish_drafts.main(["--dry-run"]) == 0
    assert get_post_by_id(draft["id"])["status"] == "draft"
    assert "1 draft post(s)" in capsys.readouterr().out

    assert publish_drafts.main([]) == 0
    published = get_post_by_id(draft["id"])
    assert published["status"] == "published"
    assert published["published_at"]


def test_fix_blog_slugs(capsys):
    post = create_post({"title": "Broken Slug Post", "content": "Text.", "status": "published"})
    execute("UPDATE blog_posts SET slug = ? WHERE id = ?", ("Bad Slug!", post["id"]))

    assert fix_blog_slugs.main(["--dry-run"]) == 0
    assert get_post_by_id(post["id"])["slug"] == "Bad Slug!"
    assert "Would update 1 post(s)." in capsys.readouterr().out

    assert fix_blog_slugs.main([]) == 0
    assert get_post_by_id(post["id"])["slug"] == "broken-slug-post"
    fix_blog_slugs.main([])
    assert "already have valid slugs" in capsys.readouterr().out


def test_check_flight_references():
    assert check_flight_references.main() == 0
    lhr = create_airport({"iata_code": "LHR", "name": "Heathrow", "latitude": 51.47, "longitude": -0.45})
    create_airport({"iata_code": "KEF", "name": "Keflavik"})
    assert check_flight_references.main() == 0

    create_flight(
        {
            "departure_airport_id": lhr["id"],
            "arrival_airport_id": get_airport_by_iata("KEF")["id"],
            "departure_time": "2024-05-01T08:00:00",
            "arrival_time": "2024-05-01T11:00:00",
        }
    )
    assert check_flight_references.main() == 1


def test_create_admin_user(monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD", "short")
    assert create_admin_user.main(["owner@example.com"]) == 1

    monkeypatch.setenv("ADMIN_PASSWORD", "first-password")
    assert create_admin_user.main(["Owner@Example.com", "--name", "Owner"]) == 0
    user = get_user_by_email("owner@example.com")
    assert user["role"] == "admin"

    monkeypatch.setenv("ADMIN_PASSWORD", "second-password")
    assert create_admin_user.main(["owner@example.com"]) == 0
    assert verify_password("second-password", get_user_by_email("owner@example.com")["password_hash"])


def test_seed_database_refuses_twice_unless_reset():
    assert seed_database.main([]) == 0
    posts = fetch_count("SELECT COUNT(*) AS count FROM blog_posts")
    assert posts == 4
    assert fetch_count("SELECT COUNT(*) AS count FROM flights") == 3

    assert seed_database.main([]) == 1
    assert seed_database.main(["--reset"]) == 0
    assert fetch_count("SELECT COUNT(*) AS count FROM blog_posts") == posts


class _AppTransport(httpx.BaseTransport):
    """Routes httpx requests into the ASGI app through a TestClient."""

    def __init__(self):
        self.client = TestClient(api_module.app)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        request.read()
        resp = self.client.request(
            request.method,
            str(request.url),
            headers={k: v for k, v in request.headers.items() if k.lower() != "host"},
            content=request.content,
        )
        return httpx.Response(resp.status_code, headers=resp.headers, content=resp.content)


def test_validate_caching_against_app(capsys):
    create_post({"title": "Cached", "content": "Text.", "status": "published"})

    code = validate_caching.main(["--base-url", "http://testserver"], transport=_AppTransport())

    out = capsys.readouterr().out
    assert "[FAIL]" not in out, out
    assert code == 0


def test_validate_caching_unreachable(capsys):
    def down(request):
        raise httpx.ConnectError("refused", request=request)

    code = validate_caching.main(["--base-url", "http://testserver"], transport=httpx.MockTransport(down))
    assert code == 1
