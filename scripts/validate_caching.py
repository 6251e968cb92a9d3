"""
Validate HTTP caching headers and offline readiness of a running site.

Usage:
  python -m scripts.validate_caching --base-url http://localhost:8000
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import List

import httpx

from core.cache import StrategyCacheTransport


CACHEABLE_ENDPOINTS = ("/api/blog", "/api/blog/categories", "/api/portfolio", "/api/flights/statistics")
OFFLINE_PATHS = ("/", "/blog", "/api/blog", "/manifest.json")


@dataclass
class Check:
    name: str
    passed: bool
    detail: str = ""
    critical: bool = True


class _SwitchableTransport(httpx.BaseTransport):
    """Forwards to the wrapped transport until switched offline, then fails like a dropped network."""

    def __init__(self, transport: httpx.BaseTransport):
        self.transport = transport
        self.offline = False

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("offline", request=request)
        return self.transport.handle_request(request)


def check_headers(client: httpx.Client) -> List[Check]:
    checks: List[Check] = []
    for path in CACHEABLE_ENDPOINTS:
        try:
            first = client.get(path)
        except httpx.HTTPError as exc:
            checks.append(Check(f"GET {path}", False, str(exc)))
            continue
        cache_control = first.headers.get("cache-control", "")
        etag = first.headers.get("etag")
        checks.append(Check(f"{path} status", first.status_code == 200, f"HTTP {first.status_code}"))
        checks.append(Check(f"{path} Cache-Control max-age", "max-age=" in cache_control, cache_control or "missing"))
        checks.append(Check(f"{path} ETag", bool(etag), etag or "missing"))
        if etag:
            second = client.get(path, headers={"If-None-Match": etag})
            checks.append(Check(f"{path} conditional GET", second.status_code == 304, f"HTTP {second.status_code}"))

    rss = client.get("/api/blog/rss")
    checks.append(
        Check(
            "RSS content type",
            rss.status_code == 200 and "application/rss+xml" in rss.headers.get("content-type", ""),
            rss.headers.get("content-type", "missing"),
        )
    )
    checks.append(Check("RSS ETag", bool(rss.headers.get("etag")), rss.headers.get("etag") or "missing", critical=False))
    return checks


def check_offline(inner: httpx.BaseTransport, base_url: str) -> List[Check]:
    """Warm a strategy cache online, cut the network, and confirm each request type degrades as expected."""
    switch = _SwitchableTransport(inner)
    transport = StrategyCacheTransport(switch, origin=base_url)
    checks: List[Check] = []
    with httpx.Client(transport=transport, base_url=base_url) as client:
        stored = transport.precache()
        checks.append(Check("precache", stored > 0, f"{stored} path(s) stored", critical=False))
        for path in OFFLINE_PATHS:
            client.get(path)

        switch.offline = True
        page = client.get("/blog")
        checks.append(Check("blog page offline", page.status_code == 200, f"HTTP {page.status_code}"))
        api = client.get("/api/blog")
        checks.append(
            Check(
                "blog API offline",
                api.status_code == 200 and api.headers.get("x-cache-status") == "cached",
                f"HTTP {api.status_code}, X-Cache-Status={api.headers.get('x-cache-status')}",
            )
        )
        image = client.get("/images/never-fetched.png")
        checks.append(
            Check(
                "image placeholder offline",
                image.headers.get("content-type", "").startswith("image/svg+xml"),
                image.headers.get("content-type", "missing"),
                critical=False,
            )
        )
        unknown = client.get("/blog/never-fetched-page")
        checks.append(
            Check(
                "offline fallback page",
                unknown.status_code == 503 and unknown.headers.get("x-cache-status") == "offline",
                f"HTTP {unknown.status_code}",
            )
        )
        checks.append(Check("cache stats", bool(transport.stats()), str(transport.stats()), critical=False))
    return checks


def main(argv=None, transport: httpx.BaseTransport | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate caching headers and offline behaviour.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    base_url = args.base_url.rstrip("/")
    inner = transport or httpx.HTTPTransport(retries=1)
    client = httpx.Client(transport=inner, base_url=base_url, timeout=10.0)
    try:
        checks = check_headers(client)
        checks += check_offline(inner, base_url)
    except httpx.HTTPError as exc:
        print(f"Caching validation failed: {exc}")
        return 1
    finally:
        client.close()

    for check in checks:
        mark = "ok" if check.passed else ("FAIL" if check.critical else "warn")
        print(f"  [{mark}] {check.name}: {check.detail}")
    failed = [c for c in checks if c.critical and not c.passed]
    print(f"\n{len(checks) - len(failed)}/{len(checks)} checks passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
