from core.database import create_post, get_post_by_id, set_site_setting


def test_home_page_lists_posts(client):
    create_post({"title": "Hello <world>", "content": "Body text.", "status": "published", "excerpt": "Intro"})
    resp = client.get("/")
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "Hello &lt;world&gt;" in resp.text
    assert 'href="/api/blog/rss"' in resp.text


def test_site_name_comes_from_settings(client):
    set_site_setting("site_name", "Field Notes")
    assert "Field Notes" in client.get("/blog").text


def test_blog_post_page_counts_views(client):
    post = create_post({"title": "Readable", "content": "## Heading\n\nText.", "status": "published"})
    resp = client.get(f"/blog/{post['slug']}")
    assert resp.status_code == 200
    assert "<h2" in resp.text

    assert get_post_by_id(post["id"])["view_count"] == 1


def test_unknown_post_page_is_404(client):
    resp = client.get("/blog/nope")
    assert resp.status_code == 404
    assert "could not be found" in resp.text


def test_draft_post_page_is_404(client):
    post = create_post({"title": "Secret", "content": "Draft text.", "status": "draft"})
    assert client.get(f"/blog/{post['slug']}").status_code == 404


def test_portfolio_and_flights_pages_render_empty(client):
    assert "No projects yet." in client.get("/portfolio").text
    assert "No trips recorded." in client.get("/flights").text


def test_offline_page_and_manifest(client):
    offline = client.get("/offline")
    assert "You're offline" in offline.text
    assert offline.headers["Cache-Control"] == "no-cache"

    manifest = client.get("/manifest.json").json()
    assert manifest["start_url"] == "/"
    assert manifest["display"] == "standalone"
