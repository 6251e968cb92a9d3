import httpx
import pytest

from core.cache import StrategyCacheTransport, classify
from core.cache.store import ResponseCache
from core.cache.strategies import CACHE_NAMES, IMAGES

ORIGIN = "http://site.test"


class InlineExecutor:
    def submit(self, fn, *args, **kwargs):
        fn(*args, **kwargs)

    def shutdown(self, wait=True):
        pass


class FakeNetwork:
    """MockTransport handler that counts hits and can be switched offline."""

    def __init__(self):
        self.offline = False
        self.hits = []
        self.status = 200
        self.version = 1

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("network down", request=request)
        self.hits.append(request.url.path)
        return httpx.Response(self.status, text=f"{request.url.path} v{self.version}")


@pytest.fixture
def clock():
    return {"now": 1_000_000.0}


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def transport(network, clock):
    return StrategyCacheTransport(
        httpx.MockTransport(network),
        origin=ORIGIN,
        clock=lambda: clock["now"],
        executor=InlineExecutor(),
    )


@pytest.fixture
def client(transport):
    with httpx.Client(transport=transport, base_url=ORIGIN) as c:
        yield c


@pytest.mark.parametrize(
    "method, path, expected",
    [
        ("GET", "/static/site.css", "static"),
        ("GET", "/fonts/a.woff2", "static"),
        ("GET", "/manifest.json", "static"),
        ("GET", "/images/photo.JPG", "images"),
        ("GET", "/api/blog", "api"),
        ("GET", "/api/blog/categories", "api"),
        ("GET", "/api/blog/search", "api"),
        ("GET", "/api/blog/my-post", None),
        ("GET", "/blog/my-post", "dynamic"),
        ("GET", "/", "dynamic"),
        ("GET", "/portfolio", None),
        ("POST", "/api/blog", None),
    ],
)
def test_classify(method, path, expected):
    assert classify(method, path) == expected


def test_cache_first_serves_from_cache_until_expiry(client, network, clock):
    assert client.get("/static/app.js").text == "/static/app.js v1"
    network.version = 2
    assert client.get("/static/app.js").text == "/static/app.js v1"
    assert network.hits == ["/static/app.js"]

    clock["now"] += 8 * 24 * 60 * 60
    assert client.get("/static/app.js").text == "/static/app.js v2"


def test_cache_first_offline_fallbacks(client, network, clock):
    client.get("/static/app.js")
    clock["now"] += 8 * 24 * 60 * 60
    network.offline = True

    stale = client.get("/static/app.js")
    assert stale.status_code == 200
    assert stale.text == "/static/app.js v1"

    missing = client.get("/static/other.css")
    assert missing.status_code == 503
    assert missing.text == "Asset not available offline"

    image = client.get("/images/never.png")
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/svg+xml"
    assert "Image unavailable offline" in image.text


def test_cache_first_does_not_store_errors(client, network):
    network.status = 404
    assert client.get("/static/missing.css").status_code == 404
    network.status = 200
    assert client.get("/static/missing.css").status_code == 200
    assert network.hits == ["/static/missing.css", "/static/missing.css"]


def test_network_first_prefers_network_and_falls_back(client, network, clock):
    client.get("/api/blog")
    network.version = 2
    assert client.get("/api/blog").text == "/api/blog v2"
    assert network.hits == ["/api/blog", "/api/blog"]

    network.offline = True
    cached = client.get("/api/blog")
    assert cached.status_code == 200
    assert cached.text == "/api/blog v2"
    assert cached.headers["X-Cache-Status"] == "cached"

    clock["now"] += 16 * 60
    offline = client.get("/api/blog")
    assert offline.status_code == 503
    assert offline.headers["X-Cache-Status"] == "offline"
    assert offline.json()["error"] == "API unavailable offline"


def test_network_first_uses_cache_on_server_error(client, network):
    client.get("/api/blog/categories")
    network.status = 500
    resp = client.get("/api/blog/categories")
    assert resp.status_code == 200
    assert resp.headers["X-Cache-Status"] == "cached"


def test_stale_while_revalidate_refreshes_in_background(client, network, transport):
    assert client.get("/blog").text == "/blog v1"
    network.version = 2

    # served from cache while the refresh stores v2
    assert client.get("/blog").text == "/blog v1"
    assert network.hits == ["/blog", "/blog"]
    assert client.get("/blog").text == "/blog v2"


def test_stale_while_revalidate_offline(client, network, clock):
    client.get("/blog/post")
    network.offline = True
    assert client.get("/blog/post").text == "/blog/post v1"

    clock["now"] += 2 * 24 * 60 * 60
    assert client.get("/blog/post").text == "/blog/post v1"

    unknown = client.get("/blog/unknown")
    assert unknown.status_code == 503
    assert unknown.headers["X-Cache-Status"] == "offline"
    assert "You're offline" in unknown.text


def test_passthrough_requests_are_never_cached(client, network, transport):
    client.post("/api/blog", json={})
    client.get("/portfolio")
    client.get("/portfolio")
    assert network.hits == ["/api/blog", "/portfolio", "/portfolio"]
    assert transport.stats() == {}


def test_other_origins_pass_through(transport, network):
    with httpx.Client(transport=transport) as other:
        other.get("http://cdn.example/static/app.js")
        other.get("http://cdn.example/static/app.js")
    assert network.hits == ["/static/app.js", "/static/app.js"]


def test_image_cache_evicts_oldest(client, transport, clock):
    for i in range(101):
        clock["now"] += 1
        client.get(f"/images/{i}.png")
    assert transport.stats()[CACHE_NAMES[IMAGES]] == 81
    assert transport.cache.match(CACHE_NAMES[IMAGES], f"GET {ORIGIN}/images/0.png") is None
    assert transport.cache.match(CACHE_NAMES[IMAGES], f"GET {ORIGIN}/images/100.png") is not None


def test_precache_and_activate(transport, network):
    assert transport.precache(["/", "/manifest.json"]) == 2
    assert transport.stats()[CACHE_NAMES["static"]] == 2

    transport.cache.put("site-static-v0.9.0", "GET /", 200, [], b"old")
    transport.cache.put("other-app", "GET /", 200, [], b"keep")
    assert transport.activate() == ["site-static-v0.9.0"]
    assert "other-app" in transport.cache.cache_names()

    transport.clear()
    assert transport.stats() == {}


def test_precache_skips_failures(transport, network):
    network.offline = True
    assert transport.precache() == 0


def test_precache_needs_origin(network):
    bare = StrategyCacheTransport(httpx.MockTransport(network))
    with pytest.raises(ValueError):
        bare.precache()


def test_response_cache_expiry():
    now = {"t": 100.0}
    cache = ResponseCache(clock=lambda: now["t"])
    entry = cache.put("c", "k", 200, [("Content-Length", "3"), ("X-A", "1")], b"abc")
    assert entry.headers == [("X-A", "1")]
    now["t"] += 10
    assert not entry.is_expired(10, now["t"])
    assert entry.is_expired(9, now["t"])
    assert cache.delete("c", "k") is True
    assert cache.match("c", "k") is None
