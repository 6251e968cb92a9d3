import asyncio
from starlette.requests import Request
from starlette.responses import Response

import app.api as api_module


def _request(path="/"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "query_string": b"",
    }
    return Request(scope)


def test_security_headers_applied():
    async def run_test():
        async def call_next(_request: Request) -> Response:
            return Response()

        resp = await api_module.add_security_headers(_request(), call_next)

        assert resp.status_code == 200
        headers = resp.headers
        assert headers.get("X-Content-Type-Options") == "nosniff"
        assert headers.get("X-Frame-Options") == "SAMEORIGIN"
        assert headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"
        csp = headers.get("Content-Security-Policy")
        assert csp is not None
        assert "default-src 'self'" in csp

    asyncio.run(run_test())


def test_security_headers_preserve_existing_csp():
    async def run_test():
        async def call_next(_request: Request) -> Response:
            resp = Response()
            resp.headers["Content-Security-Policy"] = "default-src 'self'; img-src 'self' data:"
            return resp

        resp = await api_module.add_security_headers(_request(), call_next)

        # A route's own CSP wins; the rest are still filled in
        assert resp.headers["Content-Security-Policy"] == "default-src 'self'; img-src 'self' data:"
        assert resp.headers.get("X-Content-Type-Options") == "nosniff"
        assert resp.headers.get("X-Frame-Options") == "SAMEORIGIN"

    asyncio.run(run_test())


def test_security_headers_full_app_with_testclient(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "SAMEORIGIN"
    assert "default-src 'self'" in (resp.headers.get("Content-Security-Policy") or "")


def test_api_errors_also_get_security_headers(client):
    resp = client.get("/api/blog/no-such-post")
    assert resp.status_code == 404
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("Cache-Control") == "no-cache"
