"""
Session cookies, current-user lookup and the admin guard used by mutating API routes.
"""
from __future__ import annotations

import logging
import os

from fastapi import Request
from fastapi.responses import Response

from app.responses import error
from app.security import validate_csrf
from core.database import delete_session, get_session, get_user_by_id, touch_session

log = logging.getLogger("site.auth")

SESSION_COOKIE_NAME = "session_id"
SESSION_COOKIE_MAX_AGE = 3600
SECURE_COOKIES = (
    os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes")
    or os.getenv("PUBLIC_BASE_URL", "").lower().startswith("https://")
)


def get_current_user(request: Request):
    """
    Read the session cookie and return (user_dict, session_token) or (None, None).
    Refreshes the inactivity timeout when the session is valid.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None, None

    session = get_session(token)
    if not session:
        return None, token

    user = get_user_by_id(session["user_id"])
    if not user or not user.get("active"):
        delete_session(token)
        return None, token

    touch_session(token)
    return user, token


def require_admin(request: Request, check_csrf: bool = True):
    """
    Return (user, None) for an authenticated admin, else (None, error_response):
    401 without a session, 403 for non-admins or a bad X-CSRF-Token on mutations.
    """
    user, _ = get_current_user(request)
    if not user:
        return None, error(401, "Authentication required")
    if user.get("role") != "admin":
        log.warning("Non-admin user %s tried %s %s", user["id"], request.method, request.url.path)
        return None, error(403, "Admin access required")
    if check_csrf and request.method not in ("GET", "HEAD", "OPTIONS") and not validate_csrf(request):
        return None, error(403, "Invalid or missing CSRF token")
    return user, None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=SESSION_COOKIE_MAX_AGE,
        samesite="lax",
        secure=SECURE_COOKIES,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)
