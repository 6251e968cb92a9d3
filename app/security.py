"""
CSRF double-submit tokens, the in-memory login rate limiter and response security headers.
"""
from __future__ import annotations

import hmac
import os
import secrets
import threading
import time
from typing import Dict, List, Tuple

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
SECURE_COOKIES = (
    os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes")
    or os.getenv("PUBLIC_BASE_URL", "").lower().startswith("https://")
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self' data: https:; style-src 'self' 'unsafe-inline'; "
        "script-src 'self' 'unsafe-inline'; font-src 'self' data:; connect-src 'self';"
    ),
}


def apply_security_headers(response) -> None:
    """Set the standard headers without overriding any a route already chose."""
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)


def issue_csrf_token(existing: str | None = None) -> str:
    return existing or secrets.token_urlsafe(16)


def attach_csrf_cookie(response, token: str) -> None:
    """Readable (non-HttpOnly) cookie so scripts can echo it back in the X-CSRF-Token header."""
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,
        samesite="lax",
        secure=SECURE_COOKIES,
    )


def clear_csrf_cookie(response) -> None:
    response.delete_cookie(CSRF_COOKIE_NAME)


def validate_csrf(request, submitted: str | None = None) -> bool:
    """
    Compare the submitted token (argument, else the X-CSRF-Token header) with the
    cookie value using a constant-time compare.
    """
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME) or ""
    submitted = submitted or request.headers.get(CSRF_HEADER_NAME) or ""
    if not cookie_token or not submitted:
        return False
    return hmac.compare_digest(cookie_token, submitted)


# -------- Rate limiting (in-memory) --------
_rate_state: Dict[str, List[float]] = {}
_rate_lock = threading.Lock()
RATE_STATE_SWEEP_SIZE = 1024  # sweep idle keys once this many are tracked


def _drop_idle_keys(window_start: float) -> int:
    """Caller holds _rate_lock."""
    idle = [key for key, history in _rate_state.items() if not history or history[-1] <= window_start]
    for key in idle:
        del _rate_state[key]
    return len(idle)


def allow_request(key: str, limit: int = 5, window_seconds: int = 60) -> bool:
    allowed, _ = allow_request_with_remaining(key, limit=limit, window_seconds=window_seconds)
    return allowed


def allow_request_with_remaining(key: str, limit: int = 5, window_seconds: int = 60) -> Tuple[bool, int]:
    """
    Sliding-window limit. Returns (allowed, remaining_after); a refused call is not recorded.
    """
    now = time.time()
    window_start = now - window_seconds
    with _rate_lock:
        if len(_rate_state) >= RATE_STATE_SWEEP_SIZE:
            _drop_idle_keys(window_start)
        history = [t for t in _rate_state.get(key, []) if t > window_start]
        if len(history) >= limit:
            _rate_state[key] = history
            return False, 0
        history.append(now)
        _rate_state[key] = history
        return True, max(0, limit - len(history))


def prune_rate_limits(window_seconds: int = 60) -> int:
    """Forget keys with no attempt inside the window. Returns how many were dropped."""
    with _rate_lock:
        return _drop_idle_keys(time.time() - window_seconds)


def reset_rate_limits() -> None:
    with _rate_lock:
        _rate_state.clear()


def trust_proxy_headers() -> bool:
    return os.getenv("TRUST_PROXY_HEADERS", "").lower() in ("1", "true", "yes")


def client_ip(request) -> str:
    """Socket peer address. X-Forwarded-For is only honoured when TRUST_PROXY_HEADERS is set."""
    if request is None:
        return "unknown"
    if trust_proxy_headers():
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


__all__ = [
    "CSRF_COOKIE_NAME",
    "CSRF_HEADER_NAME",
    "SECURITY_HEADERS",
    "apply_security_headers",
    "issue_csrf_token",
    "attach_csrf_cookie",
    "clear_csrf_cookie",
    "validate_csrf",
    "allow_request",
    "allow_request_with_remaining",
    "prune_rate_limits",
    "reset_rate_limits",
    "trust_proxy_headers",
    "client_ip",
]
