"""
Request classification: which caching strategy handles which URL.
"""
from __future__ import annotations

import re

CACHE_VERSION = "v1.0.0"
CACHE_PREFIX = "site-"

STATIC = "static"
IMAGES = "images"
API = "api"
DYNAMIC = "dynamic"

CACHE_NAMES = {
    STATIC: f"{CACHE_PREFIX}static-{CACHE_VERSION}",
    DYNAMIC: f"{CACHE_PREFIX}dynamic-{CACHE_VERSION}",
    IMAGES: f"{CACHE_PREFIX}images-{CACHE_VERSION}",
    API: f"{CACHE_PREFIX}api-{CACHE_VERSION}",
}

# Seconds an entry stays fresh in each cache.
CACHE_DURATIONS = {
    STATIC: 7 * 24 * 60 * 60,
    DYNAMIC: 24 * 60 * 60,
    IMAGES: 30 * 24 * 60 * 60,
    API: 15 * 60,
}

IMAGE_CACHE_MAX_ENTRIES = 100
IMAGE_CACHE_EVICT_COUNT = 20

PRECACHE_PATHS = ("/", "/blog", "/manifest.json")

_STATIC_RE = re.compile(r"\.(css|js|woff2?|ttf|eot)$")
_IMAGE_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|avif|svg)$", re.IGNORECASE)
API_CACHE_PATTERNS = (
    re.compile(r"/api/blog$"),
    re.compile(r"/api/blog/categories"),
    re.compile(r"/api/blog/tags"),
    re.compile(r"/api/blog/search"),
)


def is_static_asset(path: str) -> bool:
    return bool(_STATIC_RE.search(path)) or path in ("/manifest.json", "/favicon.ico")


def is_image_request(path: str) -> bool:
    return bool(_IMAGE_RE.search(path))


def is_api_request(path: str) -> bool:
    return any(p.search(path) for p in API_CACHE_PATTERNS)


def is_blog_page_request(method: str, path: str) -> bool:
    return method == "GET" and (path.startswith("/blog") or path == "/")


def classify(method: str, path: str) -> str | None:
    """
    Name of the cache that handles this request, or None to pass it through.
    Checked in order: static asset, image, API, blog page.
    """
    method = method.upper()
    if method != "GET":
        return None
    if is_static_asset(path):
        return STATIC
    if is_image_request(path):
        return IMAGES
    if is_api_request(path):
        return API
    if is_blog_page_request(method, path):
        return DYNAMIC
    return None
