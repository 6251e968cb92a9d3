import logging

from fastapi import APIRouter, Request

from app.auth_utils import clear_session_cookie, get_current_user, set_session_cookie
from app.responses import error, ok, read_json
from app.security import (
    allow_request_with_remaining,
    attach_csrf_cookie,
    clear_csrf_cookie,
    client_ip,
    issue_csrf_token,
)
from core.database import create_session, delete_session, get_user_by_email, update_last_login, verify_password

log = logging.getLogger("site.auth")

router = APIRouter(prefix="/api/auth")

LOGIN_ATTEMPTS_PER_MINUTE = 5


def _public_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "email": user["email"],
        "display_name": user.get("display_name"),
        "role": user.get("role"),
        "last_login_at": user.get("last_login_at"),
    }


@router.post("/login")
async def login(request: Request):
    ip = client_ip(request)
    allowed, remaining = allow_request_with_remaining(f"login:{ip}", limit=LOGIN_ATTEMPTS_PER_MINUTE, window_seconds=60)
    if not allowed:
        log.warning("Login rate limit hit for %s", ip)
        return error(429, "Too many login attempts", "Please try again in a minute.", headers={"Retry-After": "60"})

    body = await read_json(request)
    if body is None:
        return error(400, "Invalid JSON body")

    email = str(body.get("email") or "").strip()
    password = str(body.get("password") or "")
    if not email or not password:
        return error(400, "Email and password are required")

    user = get_user_by_email(email)
    if not user or not user.get("active") or not verify_password(password, user["password_hash"]):
        log.info("Failed login for %s from %s", email.lower(), ip)
        return error(401, "Invalid email or password", f"Attempts left: {remaining}")

    token = create_session(user["id"])
    update_last_login(user["id"])
    log.info("User %s logged in", user["id"])

    resp = ok({"user": _public_user(user)}, cache=False)
    set_session_cookie(resp, token)
    attach_csrf_cookie(resp, issue_csrf_token(request.cookies.get("csrf_token")))
    return resp


@router.post("/logout")
def logout(request: Request):
    _, token = get_current_user(request)
    if token:
        delete_session(token)
    resp = ok({"loggedOut": True}, cache=False)
    clear_session_cookie(resp)
    clear_csrf_cookie(resp)
    return resp


@router.get("/me")
def me(request: Request):
    user, _ = get_current_user(request)
    if not user:
        return error(401, "Authentication required")
    return ok({"user": _public_user(user)}, cache=False)
