"""
httpx transport that applies per-request-type caching strategies.

Wrap any transport to get cache-first static assets and images, network-first
blog API calls and stale-while-revalidate blog pages, with offline fallbacks:

    client = httpx.Client(transport=StrategyCacheTransport(httpx.HTTPTransport(), origin=base_url))
"""
from __future__ import annotations

import json
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Optional

import httpx

from core.cache import strategies
from core.cache.store import CachedResponse, ResponseCache

log = logging.getLogger("site.cache")

OFFLINE_HTML = """<!DOCTYPE html>
<html>
  <head>
    <title>Offline - Blog</title>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
      body { font-family: system-ui, sans-serif; text-align: center; padding: 2rem; }
      .offline-message { max-width: 500px; margin: 0 auto; }
    </style>
  </head>
  <body>
    <div class="offline-message">
      <h1>You're offline</h1>
      <p>This page isn't available offline. Please check your internet connection and try again.</p>
    </div>
  </body>
</html>
"""


def placeholder_svg(width: int = 300, height: int = 200, text: str = "Image unavailable offline") -> str:
    return (
        f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">'
        '<rect width="100%" height="100%" fill="#f3f4f6"/>'
        '<text x="50%" y="50%" font-family="system-ui, sans-serif" font-size="14" '
        f'fill="#6b7280" text-anchor="middle" dy="0.3em">{text}</text>'
        "</svg>"
    )


def _ok(status_code: int) -> bool:
    return 200 <= status_code < 300


class StrategyCacheTransport(httpx.BaseTransport):
    def __init__(
        self,
        transport: httpx.BaseTransport,
        origin: str | None = None,
        cache: ResponseCache | None = None,
        clock: Callable[[], float] = time.time,
        executor: Executor | None = None,
    ):
        self.transport = transport
        self.origin = httpx.URL(origin) if origin else None
        self.clock = clock
        self.cache = cache or ResponseCache(clock=clock)
        self._executor = executor
        self._handlers = {
            strategies.STATIC: self._cache_first,
            strategies.IMAGES: self._cache_first,
            strategies.API: self._network_first,
            strategies.DYNAMIC: self._stale_while_revalidate,
        }

    # -------- plumbing --------

    @property
    def executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="cache-refresh")
        return self._executor

    def _same_origin(self, url: httpx.URL) -> bool:
        if self.origin is None:
            return True
        return (url.scheme, url.host, url.port) == (self.origin.scheme, self.origin.host, self.origin.port)

    @staticmethod
    def _key(request: httpx.Request) -> str:
        return f"{request.method} {request.url}"

    def _fetch(self, request: httpx.Request) -> httpx.Response:
        response = self.transport.handle_request(request)
        try:
            content = response.read()
        finally:
            response.close()
        return httpx.Response(
            response.status_code,
            headers=[(k, v) for k, v in response.headers.multi_items() if k.lower() not in ("content-encoding", "content-length", "transfer-encoding")],
            content=content,
            request=request,
        )

    def _store(self, cache_kind: str, request: httpx.Request, response: httpx.Response) -> None:
        self.cache.put(
            strategies.CACHE_NAMES[cache_kind],
            self._key(request),
            response.status_code,
            response.headers.multi_items(),
            response.content,
        )
        if cache_kind == strategies.IMAGES:
            evicted = self.cache.evict_oldest(
                strategies.CACHE_NAMES[strategies.IMAGES],
                strategies.IMAGE_CACHE_MAX_ENTRIES,
                strategies.IMAGE_CACHE_EVICT_COUNT,
            )
            if evicted:
                log.debug("Evicted %s old image(s)", evicted)

    def _lookup(self, cache_kind: str, request: httpx.Request) -> Optional[CachedResponse]:
        return self.cache.match(strategies.CACHE_NAMES[cache_kind], self._key(request))

    def _fresh(self, cache_kind: str, entry: Optional[CachedResponse]) -> bool:
        return entry is not None and not entry.is_expired(strategies.CACHE_DURATIONS[cache_kind], self.clock())

    @staticmethod
    def _from_cache(entry: CachedResponse, request: httpx.Request, cache_status: str | None = None) -> httpx.Response:
        response = httpx.Response(entry.status_code, headers=entry.headers, content=entry.content, request=request)
        if cache_status:
            response.headers["X-Cache-Status"] = cache_status
        return response

    # -------- strategies --------

    def _cache_first(self, kind: str, request: httpx.Request) -> httpx.Response:
        cached = self._lookup(kind, request)
        if self._fresh(kind, cached):
            return self._from_cache(cached, request)
        try:
            response = self._fetch(request)
        except httpx.TransportError as exc:
            log.warning("Network failed for %s: %s", request.url, exc)
            if cached is not None:
                return self._from_cache(cached, request)
            if kind == strategies.IMAGES:
                return httpx.Response(
                    200,
                    headers={"Content-Type": "image/svg+xml", "Cache-Control": "no-cache"},
                    text=placeholder_svg(),
                    request=request,
                )
            return httpx.Response(503, text="Asset not available offline", request=request)
        if _ok(response.status_code):
            self._store(kind, request, response)
        return response

    def _network_first(self, kind: str, request: httpx.Request) -> httpx.Response:
        try:
            response = self._fetch(request)
            if _ok(response.status_code):
                self._store(kind, request, response)
                return response
            log.warning("API request failed: %s %s", response.status_code, request.url)
        except httpx.TransportError as exc:
            log.warning("API network failed for %s, trying cache: %s", request.url, exc)

        cached = self._lookup(kind, request)
        if self._fresh(kind, cached):
            return self._from_cache(cached, request, cache_status="cached")
        body = {
            "success": False,
            "error": "API unavailable offline",
            "message": "Please check your internet connection",
        }
        return httpx.Response(
            503,
            headers={"Content-Type": "application/json", "X-Cache-Status": "offline"},
            content=json.dumps(body).encode("utf-8"),
            request=request,
        )

    def _refresh(self, kind: str, request: httpx.Request) -> None:
        try:
            response = self._fetch(request)
        except httpx.TransportError as exc:
            log.debug("Background refresh of %s failed: %s", request.url, exc)
            return
        if _ok(response.status_code):
            self._store(kind, request, response)

    def _stale_while_revalidate(self, kind: str, request: httpx.Request) -> httpx.Response:
        cached = self._lookup(kind, request)
        if self._fresh(kind, cached):
            self.executor.submit(self._refresh, kind, request)
            return self._from_cache(cached, request)
        try:
            response = self._fetch(request)
        except httpx.TransportError as exc:
            log.warning("Page fetch failed for %s: %s", request.url, exc)
            if cached is not None:
                return self._from_cache(cached, request)
            return httpx.Response(
                503,
                headers={"Content-Type": "text/html", "X-Cache-Status": "offline"},
                text=OFFLINE_HTML,
                request=request,
            )
        if _ok(response.status_code):
            self._store(kind, request, response)
        return response

    # -------- transport API --------

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        kind = strategies.classify(request.method, request.url.path)
        if kind is None or not self._same_origin(request.url):
            return self.transport.handle_request(request)
        return self._handlers[kind](kind, request)

    def precache(self, paths=strategies.PRECACHE_PATHS) -> int:
        """Fetch and store the given same-origin paths in the static cache. Returns how many were stored."""
        if self.origin is None:
            raise ValueError("precache needs an origin")
        stored = 0
        for path in paths:
            request = httpx.Request("GET", self.origin.join(path))
            try:
                response = self._fetch(request)
            except httpx.TransportError as exc:
                log.warning("Failed to precache %s: %s", path, exc)
                continue
            if _ok(response.status_code):
                self._store(strategies.STATIC, request, response)
                stored += 1
        return stored

    def activate(self) -> list:
        """Drop caches left behind by older cache versions."""
        return self.cache.drop_caches_except(strategies.CACHE_NAMES.values(), prefix=strategies.CACHE_PREFIX)

    def clear(self) -> None:
        self.cache.clear()

    def stats(self) -> dict:
        return self.cache.stats()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        self.transport.close()
