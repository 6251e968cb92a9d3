"""
JSON envelope and HTTP caching helpers shared by the API routes.
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import Response

CACHE_PUBLIC = "public, max-age=300, s-maxage=600"
CACHE_NONE = "no-cache"
CACHE_NO_STORE = "no-store"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dumps(payload) -> bytes:
    return json.dumps(payload, default=str, separators=(",", ":")).encode("utf-8")


def compute_etag(payload) -> str:
    """Strong ETag over the payload, excluding the per-response timestamp."""
    digest = hashlib.sha256(_dumps(payload)).hexdigest()[:32]
    return f'"{digest}"'


def etag_matches(request: Request | None, etag: str) -> bool:
    if request is None:
        return False
    header = request.headers.get("if-none-match") or ""
    candidates = [c.strip() for c in header.split(",") if c.strip()]
    return etag in candidates or "*" in candidates


def json_response(
    payload: dict,
    status_code: int = 200,
    cache_control: str = CACHE_NONE,
    request: Request | None = None,
    headers: dict | None = None,
    with_etag: bool = False,
    etag_payload: dict | None = None,
) -> Response:
    """`etag_payload` replaces `payload` as the ETag source when some fields must not affect it."""
    extra = dict(headers or {})
    extra["Cache-Control"] = cache_control
    if with_etag:
        etag = compute_etag(payload if etag_payload is None else etag_payload)
        extra["ETag"] = etag
        extra["Vary"] = "Accept-Encoding"
        if etag_matches(request, etag):
            return Response(status_code=304, headers=extra)
    body = dict(payload)
    body["timestamp"] = now_iso()
    return Response(content=_dumps(body), status_code=status_code, media_type="application/json", headers=extra)


def envelope(data, pagination: dict | None = None, meta: dict | None = None, **extra) -> dict:
    payload = {"success": True, "data": data}
    if pagination is not None:
        payload["pagination"] = pagination
    if meta is not None:
        payload["meta"] = meta
    payload.update(extra)
    return payload


def _without(data, keys):
    """Copy of `data` with `keys` dropped from every nested dict."""
    if isinstance(data, dict):
        return {k: _without(v, keys) for k, v in data.items() if k not in keys}
    if isinstance(data, list):
        return [_without(v, keys) for v in data]
    return data


def etag_for(data, exclude=(), **extra) -> str:
    """The ETag `ok(data, etag_exclude=exclude, **extra)` would send."""
    return compute_etag(envelope(_without(data, exclude), **extra))


def ok(
    data,
    request: Request | None = None,
    pagination: dict | None = None,
    meta: dict | None = None,
    status_code: int = 200,
    cache: bool = True,
    headers: dict | None = None,
    etag_exclude=(),
    **extra,
) -> Response:
    """
    Success envelope. Cacheable reads (the default) carry the public Cache-Control,
    an ETag and answer a matching If-None-Match with 304. Keys named in
    `etag_exclude` are left out of the ETag wherever they appear in `data`.
    """
    payload = envelope(data, pagination, meta, **extra)
    return json_response(
        payload,
        status_code=status_code,
        cache_control=CACHE_PUBLIC if cache else CACHE_NO_STORE,
        request=request,
        headers=headers,
        with_etag=cache,
        etag_payload=envelope(_without(data, etag_exclude), pagination, meta, **extra) if etag_exclude else None,
    )


def error(status_code: int, message: str, detail: str | None = None, headers: dict | None = None) -> Response:
    payload = {"success": False, "error": message}
    if detail:
        payload["message"] = detail
    return json_response(payload, status_code=status_code, cache_control=CACHE_NONE, headers=headers)


def not_found(what: str = "Resource") -> Response:
    return error(404, f"{what} not found")


async def read_json(request: Request):
    """Return the JSON object body, or None when it is missing, malformed or not an object."""
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


__all__ = [
    "CACHE_PUBLIC",
    "CACHE_NONE",
    "CACHE_NO_STORE",
    "now_iso",
    "compute_etag",
    "etag_matches",
    "envelope",
    "etag_for",
    "json_response",
    "ok",
    "error",
    "not_found",
    "read_json",
]
